"""Tests for the portal event hub."""

import pytest

from sahayak.events import EventHub, GuidanceRequest


@pytest.mark.asyncio
async def test_sync_and_async_handlers_are_called():
    hub = EventHub()
    seen = []

    async def async_handler(request):
        seen.append(("async", request.title))

    hub.subscribe_guidance_requested(lambda request: seen.append(("sync", request.title)))
    hub.subscribe_guidance_requested(async_handler)

    await hub.request_guidance("Ration Card", "Apply online")

    assert seen == [("sync", "Ration Card"), ("async", "Ration Card")]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    hub = EventHub()
    seen = []

    def broken():
        raise RuntimeError("boom")

    hub.subscribe_open_requested(broken)
    hub.subscribe_open_requested(lambda: seen.append("opened"))

    await hub.request_open()

    assert seen == ["opened"]


@pytest.mark.asyncio
async def test_unsubscribe():
    hub = EventHub()
    seen = []
    unsubscribe = hub.subscribe_notifications(seen.append)

    first = await hub.push_notification("Grievance lodged", "Ticket #12", "SUCCESS")
    unsubscribe()
    unsubscribe()
    await hub.push_notification("Camp", "Health camp tomorrow")

    assert seen == [first]
    assert first.type == "SUCCESS"
    assert first.to_dict()["title"] == "Grievance lodged"


def test_guidance_request_fields():
    request = GuidanceRequest(title="Pension", procedure="Submit life certificate")

    assert request.title == "Pension"
    assert request.procedure == "Submit life certificate"
