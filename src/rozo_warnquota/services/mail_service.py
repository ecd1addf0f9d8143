from __future__ import annotations

import io
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol

import psutil

from rozo_warnquota.context import RunContext
from rozo_warnquota.errors import DeliveryError, DirectoryError, ResolutionError, TransportError
from rozo_warnquota.models.common import StageResult
from rozo_warnquota.models.delivery import DeliveryOutcome, DispatchSummary
from rozo_warnquota.models.quota import Offender, QuotaType
from rozo_warnquota.observability.logging import get_logger
from rozo_warnquota.services.directory_service import AddressResolver, PlainAddressResolver
from rozo_warnquota.services.notification_service import NotificationComposer

log = get_logger(__name__)

SHELL = "/bin/sh"


class Transport(Protocol):
    def write(self, data: bytes) -> None: ...

    def close(self) -> int: ...


class MessageSink(Protocol):
    def open(self, recipient: str) -> Transport: ...


class PipeTransport:
    def __init__(self, proc: psutil.Popen) -> None:
        self.proc = proc

    def write(self, data: bytes) -> None:
        stdin: BinaryIO = self.proc.stdin
        try:
            stdin.write(data)
            stdin.flush()
        except BrokenPipeError:
            log.warning("Mailer (pid %d) closed its input early", self.proc.pid)
        except OSError as e:
            raise DeliveryError(f"Cannot write to mailer (pid {self.proc.pid}): {e.strerror or e}") from e

    def close(self) -> int:
        try:
            self.proc.stdin.close()
        except BrokenPipeError:
            pass
        return self.proc.wait()


class SubprocessSink:
    def __init__(self, command: str) -> None:
        self.command = command

    def open(self, recipient: str) -> PipeTransport:
        try:
            proc = psutil.Popen([SHELL, "-c", self.command], stdin=subprocess.PIPE)
        except OSError as e:
            raise DeliveryError(f"Cannot execute '{self.command}': {e.strerror or e}") from e
        log.debug("Spawned mailer pid %d for %s", proc.pid, recipient)
        return PipeTransport(proc)


@dataclass
class RecordedMessage:
    recipient: str
    payload: bytes = b""
    status: int | None = None

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


class RecordingTransport:
    def __init__(self, record: RecordedMessage, exit_status: int) -> None:
        self.record = record
        self.exit_status = exit_status
        self._buf = io.BytesIO()

    def write(self, data: bytes) -> None:
        self._buf.write(data)

    def close(self) -> int:
        self.record.payload = self._buf.getvalue()
        self.record.status = self.exit_status
        return self.exit_status


@dataclass
class RecordingSink:
    exit_status: int = 0
    fail_open: bool = False
    messages: list[RecordedMessage] = field(default_factory=list)

    def open(self, recipient: str) -> RecordingTransport:
        if self.fail_open:
            raise DeliveryError(f"Cannot open transport for {recipient}")
        record = RecordedMessage(recipient=recipient)
        self.messages.append(record)
        return RecordingTransport(record, self.exit_status)


class MailDispatcher:
    def __init__(
        self,
        ctx: RunContext,
        sink: MessageSink,
        resolver: AddressResolver | None = None,
        composer: NotificationComposer | None = None,
    ) -> None:
        self.ctx = ctx
        self.sink = sink
        self.resolver = resolver or PlainAddressResolver()
        self.composer = composer or NotificationComposer(ctx)

    def dispatch(self) -> StageResult[DispatchSummary]:
        ts = datetime.now()
        warnings: list[str] = []
        outcomes: list[DeliveryOutcome] = []

        for offender in self.ctx.registry.offenders():
            outcome = self.mail_offender(offender)
            outcomes.append(outcome)
            if outcome.status != "SENT":
                warnings.append(f"{offender.name}: {outcome.message}")

        summary = DispatchSummary(outcomes=outcomes)
        status = "OK" if not warnings else "WARN"
        return StageResult(
            ts=ts,
            status=status,
            warning_count=len(warnings),
            warnings=warnings,
            data=summary,
        )

    def mail_offender(self, offender: Offender) -> DeliveryOutcome:
        try:
            recipient = self.resolve_recipient(offender)
        except ResolutionError as e:
            log.error("%s", e)
            return DeliveryOutcome(offender.qtype, offender.name, None, "SKIPPED", str(e))

        try:
            self.deliver(offender, recipient)
        except DeliveryError as e:
            log.error("%s", e)
            return DeliveryOutcome(offender.qtype, offender.name, recipient, "FAILED", str(e))
        except TransportError as e:
            log.warning("%s", e)
            return DeliveryOutcome(offender.qtype, offender.name, recipient, "WARN", str(e))

        log.info("Mailed %s %s at %s", offender.qtype.name.lower(), offender.name, recipient)
        return DeliveryOutcome(offender.qtype, offender.name, recipient, "SENT")

    def resolve_recipient(self, offender: Offender) -> str:
        if offender.qtype is QuotaType.GROUP:
            admin = self.ctx.admins.lookup(offender.name)
            if admin is None:
                raise ResolutionError(f"Administrator for a group {offender.name} not found. Cancelling mail.")
            return admin

        try:
            return self.resolver.resolve(offender.name)
        except DirectoryError as e:
            log.warning("%s; using %s as address", e, offender.name)
            return offender.name

    def deliver(self, offender: Offender, recipient: str) -> None:
        message = self.composer.compose(offender, recipient)
        transport = self.sink.open(recipient)
        try:
            transport.write(message.to_bytes())
        finally:
            status = transport.close()
        if status != 0:
            raise TransportError(f"Warning: Mailer exited abnormally (status {status}) for {recipient}.", status)
