import pytest

from pageaudit.platform.storage import LocalObjectStorage


def test_write_read_delete(tmp_path):
    storage = LocalObjectStorage(str(tmp_path))

    storage.write("a-1/snapshot.json", b'{"html": ""}')

    assert storage.exists("a-1/snapshot.json")
    assert storage.read("a-1/snapshot.json") == b'{"html": ""}'
    assert storage.delete("a-1/snapshot.json") is True
    assert storage.delete("a-1/snapshot.json") is False


def test_paths_cannot_escape_root(tmp_path):
    storage = LocalObjectStorage(str(tmp_path / "root"))

    with pytest.raises(ValueError):
        storage.write("../outside.txt", b"x")


def test_prefixes(tmp_path):
    storage = LocalObjectStorage(str(tmp_path / "root"))
    assert storage.list_prefixes() == []

    storage.write("b-2/snapshot.json", b"{}")
    storage.write("a-1/snapshot.json", b"{}")

    assert storage.list_prefixes() == ["a-1", "b-2"]
    assert storage.delete_prefix("a-1") is True
    assert storage.delete_prefix("a-1") is False
    assert storage.delete_prefix("") is False
    assert storage.list_prefixes() == ["b-2"]
