from __future__ import annotations

import threading

import pytest

from ddblocal.names import ALPHABET, NameGeneratorFunc, RandomNameGenerator


def test_generates_strings_of_correct_length() -> None:
    name = RandomNameGenerator().generate()
    assert len(name) == 12


def test_generates_only_alphanumeric_characters() -> None:
    gen = RandomNameGenerator()
    for _ in range(50):
        assert set(gen.generate()) <= set(ALPHABET)


def test_generates_unique_strings() -> None:
    gen = RandomNameGenerator()
    assert gen.generate() != gen.generate()


def test_concurrent_generation_does_not_collide() -> None:
    """A shared generator used from many threads keeps producing distinct names."""
    gen = RandomNameGenerator()
    names: list[str] = []
    lock = threading.Lock()

    def work() -> None:
        local = [gen.generate() for _ in range(100)]
        with lock:
            names.extend(local)

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(names) == 800
    assert len(set(names)) == 800


def test_entropy_failure_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(_: str) -> str:
        raise OSError("no entropy")

    monkeypatch.setattr("ddblocal.names.secrets.choice", broken)
    with pytest.raises(OSError, match="no entropy"):
        RandomNameGenerator().generate()


def test_invalid_arguments_are_rejected() -> None:
    with pytest.raises(ValueError):
        RandomNameGenerator(length=0)
    with pytest.raises(ValueError):
        RandomNameGenerator(alphabet="")


def test_func_adapter() -> None:
    assert NameGeneratorFunc(lambda: "fixed").generate() == "fixed"
