"""Container environment for smoke tests.

One environment is an isolated docker network holding a Seq container and
the image under test. Resource names are reserved and fixed, so at most one
environment exists at a time; ``start`` clears any leftover instance before
creating a new one, which keeps retries idempotent after a crashed attempt.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from shipline.core.config import SmokeConfig, Transport
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol, Style
from shipline.platform.process import ProcessRunner
from shipline.services.errors import EnvironmentSetupFailure, TeardownFailure

# Docker reports an absent resource with one of these (exit code varies by version)
_ABSENT_MARKERS = ("no such container", "no such network", "not found")


@dataclass(frozen=True, slots=True)
class ReservedNames:
    network: str
    seq: str
    subject: str

    @classmethod
    def from_prefix(cls, prefix: str) -> ReservedNames:
        return cls(network=prefix, seq=f"{prefix}-seq", subject=f"{prefix}-subject")


@dataclass(frozen=True, slots=True)
class Environment:
    network: str
    seq_container: str
    subject_container: str
    transport: Transport
    port_binding: str


class EnvironmentManager:
    def __init__(
        self,
        *,
        runner: ProcessRunner,
        console: ConsoleProtocol,
        config: SmokeConfig,
        image: str,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._runner = runner
        self._console = console
        self._config = config
        self._image = image
        self._sleep = sleep
        self.names = ReservedNames.from_prefix(config.name_prefix)

    def start(
        self, transport: Transport
    ) -> Result[Environment, EnvironmentSetupFailure | TeardownFailure]:
        cfg = self._config
        names = self.names

        cleared = self._remove_all()
        if isinstance(cleared, Err):
            return cleared

        created = self._create("network", ["docker", "network", "create", names.network])
        if isinstance(created, Err):
            return created

        created = self._create(
            "seq",
            [
                "docker", "run", "-d",
                "--name", names.seq,
                "--network", names.network,
                "-e", "ACCEPT_EULA=Y",
                "-p", f"{cfg.seq_host_port}:{cfg.seq_container_port}",
                cfg.seq_image,
            ],
        )  # fmt: skip
        if isinstance(created, Err):
            return created

        binding = f"{cfg.syslog_port}:{cfg.syslog_port}/{transport}"
        created = self._create(
            "subject",
            [
                "docker", "run", "-d",
                "--name", names.subject,
                "--network", names.network,
                *self._subject_env(transport),
                "-p", binding,
                self._image,
            ],
            extra_env=self._subject_secrets(),
        )  # fmt: skip
        if isinstance(created, Err):
            return created

        self._sleep(cfg.settle_seconds)
        return Ok(
            Environment(
                network=names.network,
                seq_container=names.seq,
                subject_container=names.subject,
                transport=transport,
                port_binding=binding,
            )
        )

    def stop(self) -> Result[None, TeardownFailure]:
        """Force-remove both containers and the network.

        Absent resources count as removed; any other failure is returned and
        must not be retried.
        """
        return self._remove_all()

    def _remove_all(self) -> Result[None, TeardownFailure]:
        names = self.names
        steps = (
            (names.subject, ["docker", "rm", "-f", names.subject]),
            (names.seq, ["docker", "rm", "-f", names.seq]),
            (names.network, ["docker", "network", "rm", names.network]),
        )
        for resource, cmd in steps:
            result = self._runner.run(cmd)
            if isinstance(result, Err) and not result.error.mentions(*_ABSENT_MARKERS):
                return Err(TeardownFailure(resource=resource, error=result.error))
        return Ok(None)

    def collect_logs(self, environment: Environment) -> None:
        """Print container logs; failures are reported but never fatal."""
        for name in (environment.seq_container, environment.subject_container):
            self._console.print(f"logs: {name}", Style.BOLD)
            result = self._runner.run(["docker", "logs", name])
            if isinstance(result, Err):
                self._console.warning(f"could not collect logs from {name}: {result.error}")

    def _subject_env(self, transport: Transport) -> list[str]:
        cfg = self._config
        env = [
            "-e", f"SEQ_ADDRESS=http://{self.names.seq}:{cfg.seq_container_port}",
            "-e", f"SYSLOG_LISTEN_URI={transport}://0.0.0.0:{cfg.syslog_port}",
            "-e", f"SYSLOG_ENABLE_DIAGNOSTICS={'true' if cfg.diagnostics else 'false'}",
        ]  # fmt: skip
        if cfg.api_key:
            # value comes from the docker client's environment, keeping it off the command line
            env += ["-e", "SEQ_API_KEY"]
        return env

    def _subject_secrets(self) -> dict[str, str]:
        if self._config.api_key:
            return {"SEQ_API_KEY": self._config.api_key}
        return {}

    def _create(
        self, step: str, cmd: list[str], *, extra_env: dict[str, str] | None = None
    ) -> Result[None, EnvironmentSetupFailure]:
        result = self._runner.run(cmd, extra_env=extra_env)
        if isinstance(result, Err):
            return Err(EnvironmentSetupFailure(step=step, error=result.error))
        return Ok(None)
