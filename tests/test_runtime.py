from __future__ import annotations

import asyncio
import time
from urllib.parse import parse_qs

import dns.exception
import httpx
import pytest

import blockcheck.engine.detectors as detectors
import blockcheck.engine.runtime as runtime
from blockcheck.engine.runtime import CheckResult, InvalidInput, parse_domains_payload, run_checks, verdict_status
from blockcheck.engine.settings import CheckSettings

REGISTRY_HOST = "registry.test"
SETTINGS = CheckSettings(registry_url=f"https://{REGISTRY_HOST}/Rest_server/getrecordsname_home", useragent="pytest")


class FakeResolver:
    def __init__(self, answers):
        self.answers = answers

    def resolve(self, name, rdtype):
        value = self.answers.get(name)
        if value is None:
            raise dns.exception.Timeout()
        return value


def _run(domains, handler, answers=None, settings=SETTINGS, progress_callback=None):
    async def _go():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler), follow_redirects=True, max_redirects=5
        ) as client:
            return await run_checks(
                domains,
                settings,
                client=client,
                resolver=FakeResolver(answers or {}),
                progress_callback=progress_callback,
            )

    return asyncio.run(_go())


def _registry_response(request: httpx.Request, listed):
    names = parse_qs(request.content.decode())["name"][0].split(" ")
    return httpx.Response(
        200,
        json=[{"name": name, "status": "ADA" if name in listed else "TIDAK ADA"} for name in names],
    )


def test_verdict_status_truth_table():
    for dns_flag in (False, True):
        for sni_flag in (False, True):
            for official_flag in (False, True):
                expected = "Blocked" if (dns_flag or sni_flag or official_flag) else "Clean"
                assert verdict_status(dns_flag, sni_flag, official_flag) == expected


def test_check_result_to_dict_shape():
    result = CheckResult(input="https://A.test/x", domain="a.test", sni_blocked=True, detail={"ips": []})
    assert result.to_dict() == {
        "input": "https://A.test/x",
        "domain": "a.test",
        "dns_blocked": False,
        "sni_blocked": True,
        "official_blocked": False,
        "status": "Blocked",
    }
    assert result.to_dict(detail=True)["detail"] == {"ips": []}


def test_parse_domains_payload_rejects_bad_shapes():
    assert parse_domains_payload({"domains": ["a.test", ""]}) == ["a.test", ""]
    assert parse_domains_payload({"domains": []}) == []
    for payload in (None, [], "a.test", {}, {"domains": "a.test"}, {"domains": {"a": 1}}, {"domains": ["a.test", 3]}):
        with pytest.raises(InvalidInput):
            parse_domains_payload(payload)


def test_end_to_end_official_listing_and_clean_domain():
    registry_calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            registry_calls.append(request)
            return _registry_response(request, listed={"blocked-example.test"})
        return httpx.Response(200, text="ok")

    results = _run(
        ["https://blocked-example.test/x", "clean-example.test"],
        handler,
        answers={"blocked-example.test": ["93.184.216.34"], "clean-example.test": ["93.184.216.35"]},
    )
    assert len(registry_calls) == 1
    assert [r.to_dict() for r in results] == [
        {
            "input": "https://blocked-example.test/x",
            "domain": "blocked-example.test",
            "dns_blocked": False,
            "sni_blocked": False,
            "official_blocked": True,
            "status": "Blocked",
        },
        {
            "input": "clean-example.test",
            "domain": "clean-example.test",
            "dns_blocked": False,
            "sni_blocked": False,
            "official_blocked": False,
            "status": "Clean",
        },
    ]
    assert results[0].detail["official_status"] == "ADA"
    assert results[1].detail["sni_outcome"] == "completed"


def test_each_detector_reported_independently():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return _registry_response(request, listed=set())
        if request.url.host == "reset.test":
            raise httpx.ConnectError("Connection reset by peer", request=request)
        if request.url.host == "sinkhole.test":
            return httpx.Response(302, headers={"Location": "http://internetpositif.id/"})
        return httpx.Response(200)

    results = _run(
        ["poisoned.test", "reset.test", "sinkhole.test"],
        handler,
        answers={"poisoned.test": ["125.160.17.84"], "reset.test": ["1.2.3.4"], "sinkhole.test": ["1.2.3.5"]},
    )
    flags = [(r.domain, r.dns_blocked, r.sni_blocked, r.official_blocked, r.status) for r in results]
    assert flags == [
        ("poisoned.test", True, False, False, "Blocked"),
        ("reset.test", False, True, False, "Blocked"),
        ("sinkhole.test", False, True, False, "Blocked"),
    ]
    assert results[1].detail["sni_outcome"] == "transport-failed"
    assert results[2].detail["sni_outcome"] == "sinkhole-redirect"


def test_empty_inputs_are_skipped_and_order_preserved_despite_latency():
    delays = {"slow.test": 0.3, "medium.test": 0.1, "fast.test": 0.0}

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return httpx.Response(200, json=[])
        await asyncio.sleep(delays[request.url.host])
        return httpx.Response(200)

    inputs = ["slow.test", "   ", "https://MEDIUM.test/a", "", "fast.test"]
    progress = []
    results = _run(inputs, handler, progress_callback=lambda done, total: progress.append((done, total)))
    assert [r.input for r in results] == ["slow.test", "https://MEDIUM.test/a", "fast.test"]
    assert [r.domain for r in results] == ["slow.test", "medium.test", "fast.test"]
    assert len(results) == len(inputs) - 2
    assert progress[-1] == (3, 3)


def test_registry_failure_defaults_official_flag_to_false():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            raise httpx.ConnectTimeout("registry down", request=request)
        return httpx.Response(200)

    results = _run(["a.test", "b.test"], handler, answers={"a.test": ["1.1.1.1"], "b.test": ["1.1.1.2"]})
    assert [(r.official_blocked, r.status) for r in results] == [(False, "Clean"), (False, "Clean")]


def test_registry_disabled_makes_no_registry_call():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200)

    settings = SETTINGS.with_overrides(registry_enabled=False)
    results = _run(["a.test"], handler, answers={"a.test": ["1.1.1.1"]}, settings=settings)
    assert hosts == ["a.test"]
    assert results[0].status == "Clean"


def test_all_empty_inputs_make_no_network_calls():
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200)

    assert _run(["", "  "], handler) == []
    assert hosts == []


def test_duplicate_inputs_each_get_a_result():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return _registry_response(request, listed={"dup.test"})
        return httpx.Response(200)

    results = _run(["dup.test", "https://DUP.test/page"], handler, answers={"dup.test": ["1.1.1.1"]})
    assert [(r.input, r.domain, r.official_blocked) for r in results] == [
        ("dup.test", "dup.test", True),
        ("https://DUP.test/page", "dup.test", True),
    ]


def test_unexpected_failure_in_one_domain_does_not_abort_batch(monkeypatch):
    original_probe = detectors.SniDetector.probe

    async def flaky_probe(self, domain):
        if domain == "bad.test":
            raise RuntimeError("probe crashed")
        return await original_probe(self, domain)

    monkeypatch.setattr(detectors.SniDetector, "probe", flaky_probe)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return httpx.Response(200, json=[])
        return httpx.Response(200)

    results = _run(["bad.test", "good.test"], handler, answers={"bad.test": ["1.1.1.1"], "good.test": ["1.1.1.2"]})
    assert [r.domain for r in results] == ["bad.test", "good.test"]
    assert results[0].sni_blocked is False
    assert "RuntimeError" in results[0].detail["error"]
    assert results[1].status == "Clean"


def test_deadline_marks_slow_domain_incomplete():
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return _registry_response(request, listed={"slow.test"})
        if request.url.host == "slow.test":
            await asyncio.sleep(2.0)
        return httpx.Response(200)

    settings = SETTINGS.with_overrides(deadline=0.2)
    started = time.perf_counter()
    results = _run(["slow.test", "fast.test"], handler, answers={"slow.test": ["1.1.1.1"], "fast.test": ["1.1.1.2"]}, settings=settings)
    assert time.perf_counter() - started < 1.5
    slow, fast = results
    assert slow.detail["incomplete"] is True
    assert (slow.dns_blocked, slow.sni_blocked, slow.official_blocked) == (False, False, True)
    assert slow.status == "Blocked"
    assert fast.detail["incomplete"] is False
    assert fast.status == "Clean"


def test_deadline_bounds_batch_time_with_hung_resolver():
    class HungResolver:
        def resolve(self, name, rdtype):
            time.sleep(2.0)
            return ["1.1.1.1"]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return httpx.Response(200, json=[])
        return httpx.Response(200)

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True) as client:
            return await run_checks(["hung.test"], SETTINGS.with_overrides(deadline=0.2), client=client, resolver=HungResolver())

    started = time.perf_counter()
    results = asyncio.run(_go())
    assert time.perf_counter() - started < 1.5
    assert results[0].detail["incomplete"] is True
    assert results[0].status == "Clean"


def test_max_concurrency_limits_parallel_domain_tasks():
    active = {"now": 0, "peak": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == REGISTRY_HOST:
            return httpx.Response(200, json=[])
        active["now"] += 1
        active["peak"] = max(active["peak"], active["now"])
        await asyncio.sleep(0.05)
        active["now"] -= 1
        return httpx.Response(200)

    settings = SETTINGS.with_overrides(max_concurrency=2)
    domains = [f"d{i}.test" for i in range(6)]
    results = _run(domains, handler, settings=settings)
    assert [r.domain for r in results] == domains
    assert active["peak"] <= 2


def test_check_public_api_returns_dicts(monkeypatch):
    seen = {}

    async def fake_run_checks(domains, settings):
        seen["domains"] = domains
        seen["settings"] = settings
        return [CheckResult(input=domains[0], domain="a.test", detail={"ips": ["1.1.1.1"]})]

    monkeypatch.setattr(runtime, "run_checks", fake_run_checks)
    rows = runtime.CHECK("A.test", settings=CheckSettings(), https_timeout=4.0)
    assert seen["domains"] == ["A.test"]
    assert seen["settings"].https_timeout == 4.0
    assert rows == [
        {
            "input": "A.test",
            "domain": "a.test",
            "dns_blocked": False,
            "sni_blocked": False,
            "official_blocked": False,
            "status": "Clean",
        }
    ]
    detailed = runtime.CHECK(["A.test"], settings=CheckSettings(), detail=True)
    assert detailed[0]["detail"] == {"ips": ["1.1.1.1"]}


def test_run_coro_sync_inside_running_loop():
    async def inner():
        return 42

    async def outer():
        return runtime._run_coro_sync(inner())

    assert asyncio.run(outer()) == 42
