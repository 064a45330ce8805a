from tests.fixtures.fakes import FakeBackend, FakeWidget

__all__ = ["FakeBackend", "FakeWidget"]
