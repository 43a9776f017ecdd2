"""Shared fixtures: a deterministic in-memory boolean kernel."""

import numpy as np
import pytest

from core.geometry import BooleanKernel, BooleanSolidService, MeshBuffer, Solid


class FakeSolid(Solid):
    """Solid that records operations instead of computing them.

    union concatenates both operands; subtract and intersect keep the
    left operand's geometry.
    """

    def __init__(self, vertices, faces, kernel):
        self.vertices = np.asarray(vertices, dtype=float)
        self.faces = np.asarray(faces, dtype=np.int64)
        self.kernel = kernel

    def _step(self, name, other):
        self.kernel.operations.append(name)
        if self.kernel.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    def union(self, other):
        self._step("union", other)
        faces = np.vstack([self.faces, other.faces + len(self.vertices)])
        return FakeSolid(np.vstack([self.vertices, other.vertices]), faces, self.kernel)

    def subtract(self, other):
        self._step("subtract", other)
        return FakeSolid(self.vertices, self.faces, self.kernel)

    def intersect(self, other):
        self._step("intersect", other)
        return FakeSolid(self.vertices, self.faces, self.kernel)


class FakeKernel(BooleanKernel):
    name = "fake"

    def __init__(self, supported=True, fail_on=None):
        self.supported = supported
        self.fail_on = fail_on
        self.operations = []
        self.conversions = 0

    def is_supported(self):
        return self.supported

    def from_mesh(self, buffer):
        self.conversions += 1
        return FakeSolid(buffer.world_vertices(), buffer.faces, self)

    def to_mesh(self, solid):
        return MeshBuffer(vertices=solid.vertices.copy(), faces=solid.faces.copy())


@pytest.fixture
def fake_kernel():
    """Boolean kernel that needs no native engine."""
    return FakeKernel()


@pytest.fixture
def boolean_service(fake_kernel):
    """Boolean solid service backed by the fake kernel."""
    service = BooleanSolidService(kernel=fake_kernel)
    yield service
    service.dispose()


@pytest.fixture
def kernel_factory():
    """Build fake kernels with custom support/failure behaviour."""
    return FakeKernel
