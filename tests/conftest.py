"""
测试配置文件 - pytest fixture定义
Fake collaborators and a fake clock for deterministic polling tests.
"""
import threading
import pytest
from typing import Callable, Dict, List, Optional, Union

from vmdhcp.config.settings import VMDhcpSettings
from vmdhcp.core.exceptions import NotFoundError
from vmdhcp.core.unified_logger import LoggerFactory
from vmdhcp.domain.entities.network import NicObservation, GatewayRef, DhcpLease


class FakeClock:
    """Monotonic clock that only moves when the loop sleeps"""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleeper(self, seconds: float, cancel_event: threading.Event) -> bool:
        if cancel_event.is_set():
            return True
        self.sleeps.append(seconds)
        self.now += seconds
        return cancel_event.is_set()


class FakeReader:
    """
    Network configuration reader driven by a script.

    script(call_number) returns the NIC list for that call (1-based) or
    raises to simulate a failure.
    """

    def __init__(self, script: Union[Callable[[int], List[NicObservation]], List[NicObservation]]):
        self.script = script if callable(script) else (lambda call: list(script))
        self.calls = 0
        self.vm_names: List[str] = []

    def read_nics(self, vm_name: str) -> List[NicObservation]:
        self.calls += 1
        self.vm_names.append(vm_name)
        return self.script(self.calls)


class FakeTopology:
    """Topology resolver backed by a network -> gateway (or exception) map"""

    def __init__(self, gateways: Dict[str, Union[GatewayRef, Exception]]):
        self.gateways = gateways
        self.calls: List[str] = []

    def gateway_for_network(self, network_name: str) -> GatewayRef:
        self.calls.append(network_name)
        value = self.gateways.get(network_name)
        if value is None:
            raise NotFoundError(f"network {network_name} is not routed", operation="test")
        if isinstance(value, Exception):
            raise value
        return value


class FakeLeaseSource:
    """Lease fetcher; script(call_number, gateway) returns leases or raises"""

    def __init__(self, script: Union[Callable[[int, GatewayRef], List[DhcpLease]], List[DhcpLease]]):
        self.script = script if callable(script) else (lambda call, gateway: list(script))
        self.calls: List[str] = []

    def all_leases(self, gateway: GatewayRef) -> List[DhcpLease]:
        self.calls.append(gateway.name)
        return self.script(len(self.calls), gateway)


def nic(index: int, ip: str = "", mac: str = "", network: Optional[str] = "routed") -> NicObservation:
    return NicObservation(index=index, ip_address=ip, mac_address=mac, network=network)


def lease(mac: str, ip: str, state: str = "active") -> DhcpLease:
    return DhcpLease(mac_address=mac, ip_address=ip, binding_state=state)


@pytest.fixture(autouse=True)
def reset_loggers():
    """每个测试后重置日志工厂"""
    yield
    LoggerFactory.reset()


@pytest.fixture
def clock():
    """模拟时钟"""
    return FakeClock()


@pytest.fixture
def settings():
    """默认配置: 3秒轮询间隔"""
    return VMDhcpSettings(tick_interval_seconds=3.0)


@pytest.fixture
def gateway():
    return GatewayRef(name="routed", bridge="virbr1", address="10.0.0.1")
