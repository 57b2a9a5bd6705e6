import os
import sys

import pytest

# Add the project root and this directory to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import FakeGateway, FakeOutput, FakeStreamFactory
from sahayak.audio.capture import AudioCaptureController
from sahayak.session import AssistantSession


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def stream_factory():
    return FakeStreamFactory()


@pytest.fixture
def capture(stream_factory):
    return AudioCaptureController(sample_rate=16000, frame_samples=4, device=None, stream_factory=stream_factory)


@pytest.fixture
def outputs():
    return []


@pytest.fixture
def output_factory(outputs):
    def factory(scheduler):
        output = FakeOutput(scheduler)
        outputs.append(output)
        return output

    return factory


@pytest.fixture
def session(gateway, capture, output_factory):
    return AssistantSession(gateway, capture=capture, output_factory=output_factory, timeout=5)
