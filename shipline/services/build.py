from __future__ import annotations

from dataclasses import dataclass

from shipline.core.config import BuildConfig
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol
from shipline.platform.process import ProcessRunner
from shipline.services.errors import ProcessFailure


@dataclass(frozen=True, slots=True)
class BuildReport:
    targets: tuple[str, ...]
    image: str


def image_ref(config: BuildConfig, version: str) -> str:
    """Local reference of the image under test, e.g. ``squiflog-ci:1.2.3``."""
    return f"{config.image}:{version}"


class BuildDriver:
    """Compile, unit test and containerize the daemon.

    Every step is fail-fast: compiler and test failures are deterministic,
    so nothing here is retried.
    """

    def __init__(
        self,
        *,
        runner: ProcessRunner,
        console: ConsoleProtocol,
        config: BuildConfig,
    ) -> None:
        self._runner = runner
        self._console = console
        self._config = config

    @property
    def _manifest(self) -> str:
        return f"{self._config.crate_dir}/Cargo.toml"

    def compile_and_test(self) -> Result[tuple[str, ...], ProcessFailure]:
        done: list[str] = []
        for target in self._config.targets:
            self._console.header(f"Build {target}")
            steps = (
                (
                    f"cargo build ({target})",
                    ["cargo", "build", "--release", "--manifest-path", self._manifest, "--target", target],
                ),
                (
                    f"cargo test ({target})",
                    ["cargo", "test", "--manifest-path", self._manifest, "--target", target],
                ),
            )
            for stage, cmd in steps:
                result = self._runner.run(cmd)
                if isinstance(result, Err):
                    return Err(ProcessFailure(stage=stage, error=result.error))
            done.append(target)
        return Ok(tuple(done))

    def build_image(self, image: str) -> Result[str, ProcessFailure]:
        """Build the container image from a clean cache."""
        self._console.header(f"Containerize {image}")
        cmd = [
            "docker", "build",
            "--no-cache", "--pull",
            "-t", image,
            "-f", self._config.dockerfile,
            self._config.context,
        ]  # fmt: skip
        result = self._runner.run(cmd)
        if isinstance(result, Err):
            return Err(ProcessFailure(stage="docker build", error=result.error))
        return Ok(image)

    def run(self, version: str) -> Result[BuildReport, ProcessFailure]:
        targets = self.compile_and_test()
        if isinstance(targets, Err):
            return targets

        image = self.build_image(image_ref(self._config, version))
        if isinstance(image, Err):
            return image

        return Ok(BuildReport(targets=targets.value, image=image.value))
