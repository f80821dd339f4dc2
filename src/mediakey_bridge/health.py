import importlib
import logging
import socket
from dataclasses import dataclass

from mediakey_bridge.config import BridgeConfig

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: BridgeConfig) -> list[HealthCheckResult]:
    results = [
        _check_endpoint_reachable(config),
        _check_key_source(config),
    ]

    passed = sum(1 for r in results if r.passed)

    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    # An unreachable endpoint is not critical: the channel keeps retrying
    critical_checks = {"key_source"}
    return any(not r.passed and r.name in critical_checks for r in results)


def _check_endpoint_reachable(config: BridgeConfig) -> HealthCheckResult:
    name = "endpoint"
    host, port = config.host_and_port()
    try:
        with socket.create_connection((host, port), timeout=2.0):
            pass
        return HealthCheckResult(name=name, passed=True, detail=f"{host}:{port} reachable")
    except OSError as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"{host}:{port} unreachable ({exc})")


def _check_key_source(config: BridgeConfig) -> HealthCheckResult:
    name = "key_source"
    if config.key_source == "none":
        return HealthCheckResult(name=name, passed=True, detail="Key capture disabled")
    try:
        importlib.import_module("pynput.keyboard")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"pynput unavailable: {exc}")
    return HealthCheckResult(name=name, passed=True, detail="pynput keyboard backend loaded")
