import asyncio

import pytest
import requests

from bundle_resolve import VersionCatalog, VersionLookupError, VersionNotSatisfiableError
from bundle_resolve.versions import DOCKER_HUB_TAGS_URL, fetch_docker_hub_versions, shared_catalog


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_resolve_version_picks_highest_match(catalog):
    assert await catalog.resolve_version("raspberrypi3", "^6.0.0") == "6.10.3"
    assert await catalog.resolve_version("raspberrypi3", ">=4 <6") == "4.2.1"
    assert await catalog.resolve_version("raspberrypi3", "0.10.22") == "0.10.22"


@pytest.mark.asyncio
async def test_resolve_version_not_satisfiable(catalog):
    with pytest.raises(VersionNotSatisfiableError) as exc_info:
        await catalog.resolve_version("raspberrypi3", "^12.0.0")
    assert exc_info.value.device_type == "raspberrypi3"
    assert exc_info.value.version_range == "^12.0.0"


@pytest.mark.asyncio
async def test_resolve_version_invalid_range(catalog):
    with pytest.raises(VersionNotSatisfiableError):
        await catalog.resolve_version("raspberrypi3", "not a range!")


@pytest.mark.asyncio
async def test_versions_are_cached_per_device_type(catalog, fetched_device_types):
    await catalog.versions("raspberrypi3")
    await catalog.versions("raspberrypi3")
    await catalog.versions("intel-nuc")
    assert fetched_device_types == ["raspberrypi3", "intel-nuc"]


@pytest.mark.asyncio
async def test_cache_entries_expire():
    calls = []
    clock = FakeClock()
    catalog = VersionCatalog(fetch=lambda dt: calls.append(dt) or ["1.0.0"], ttl=3600, clock=clock)

    await catalog.versions("raspberrypi3")
    clock.now += 3599
    await catalog.versions("raspberrypi3")
    assert len(calls) == 1

    clock.now += 2
    await catalog.versions("raspberrypi3")
    assert len(calls) == 2

    catalog.clear()
    await catalog.versions("raspberrypi3")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_non_semver_tags_are_ignored():
    catalog = VersionCatalog(fetch=lambda dt: ["latest", "6.9", "6.9.0", "slim"])
    assert [str(v) for v in await catalog.versions("raspberrypi3")] == ["6.9.0"]


@pytest.mark.asyncio
async def test_concurrent_lookups_are_safe():
    catalog = VersionCatalog(fetch=lambda dt: ["1.0.0", "1.2.0"])
    results = await asyncio.gather(
        catalog.resolve_version("raspberrypi3", "^1.0.0"),
        catalog.resolve_version("raspberrypi3", "~1.0.0"),
    )
    assert results == ["1.2.0", "1.0.0"]


def test_fetch_docker_hub_versions_follows_pages(mocker):
    first = mocker.Mock()
    first.json.return_value = {
        "results": [{"name": "6.9.0"}, {"name": "latest"}],
        "next": "https://hub.docker.com/v2/repositories/resin/rpi-node/tags/?page=2",
    }
    second = mocker.Mock()
    second.json.return_value = {"results": [{"name": "4.2.1"}, {"name": "4.2.1-slim"}], "next": None}
    get = mocker.patch("bundle_resolve.versions.requests.get", side_effect=[first, second])

    assert fetch_docker_hub_versions("rpi") == ["6.9.0", "4.2.1"]

    assert get.call_count == 2
    assert get.call_args_list[0].args[0] == DOCKER_HUB_TAGS_URL.format(device_type="rpi")
    assert get.call_args_list[0].kwargs["params"] == {"page_size": 100}
    assert get.call_args_list[1].kwargs["params"] is None
    first.raise_for_status.assert_called_once()


def test_shared_catalog_is_reused():
    assert shared_catalog() is shared_catalog()


@pytest.mark.asyncio
async def test_failed_lookup_raises_typed_error():
    def fetch(device_type):
        raise requests.ConnectionError("offline")

    catalog = VersionCatalog(fetch=fetch)
    with pytest.raises(VersionLookupError) as exc_info:
        await catalog.resolve_version("raspberrypi3", "^6.0.0")
    assert exc_info.value.device_type == "raspberrypi3"
    assert "offline" in str(exc_info.value)
