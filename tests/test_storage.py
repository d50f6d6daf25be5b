import json

from stampkit.core.objects import Design, StraightLine, Logo
from stampkit.core.storage import DesignStorage, LocalStorage
from stampkit.core.state import STORAGE_KEY


def test_local_storage_set_get_remove(storage_path):
    store = LocalStorage(storage_path)
    assert store.get_item("missing") is None

    store.set_item("a", "1")
    store.set_item("b", "2")
    assert store.get_item("a") == "1"
    assert json.loads(storage_path.read_text(encoding="utf-8")) == {"a": "1", "b": "2"}

    store.remove_item("a")
    assert store.get_item("a") is None
    assert store.get_item("b") == "2"
    assert not storage_path.with_suffix(".json.tmp").exists()


def test_save_writes_record(storage_path, sample_product):
    storage = DesignStorage(LocalStorage(storage_path))
    design = Design(lines=(StraightLine(id="l1", text="ACME"),), ink_color="red")
    assert storage.save(design, sample_product) is True

    record = json.loads(LocalStorage(storage_path).get_item(STORAGE_KEY))
    assert record["designId"] == "stamp-stamp-6040"
    assert record["productId"] == "stamp-6040"
    assert record["design"]["lines"][0]["text"] == "ACME"
    assert record["savedAt"].endswith("+00:00")


def test_load_returns_saved_design(storage_path, sample_product):
    storage = DesignStorage(LocalStorage(storage_path))
    design = Design(lines=(StraightLine(id="l1", text="ACME"),), logo=Logo(enabled=True, image="logo.png"))
    storage.save(design, sample_product)

    assert storage.has_saved(sample_product)
    assert storage.load(sample_product) == design


def test_load_for_other_product_is_none(storage_path, sample_product, round_product):
    storage = DesignStorage(LocalStorage(storage_path))
    storage.save(Design(), sample_product)
    assert storage.load(round_product) is None
    assert not storage.has_saved(round_product)


def test_corrupt_record_is_ignored(storage_path, sample_product, caplog):
    LocalStorage(storage_path).set_item(STORAGE_KEY, "{not json")
    storage = DesignStorage(LocalStorage(storage_path))
    assert storage.load(sample_product) is None
    assert "Failed to read saved design" in caplog.text


def test_unreadable_file_is_ignored(storage_path, sample_product):
    storage_path.write_text("[broken", encoding="utf-8")
    assert DesignStorage(LocalStorage(storage_path)).load(sample_product) is None


def test_clear(storage_path, sample_product):
    storage = DesignStorage(LocalStorage(storage_path))
    storage.save(Design(), sample_product)
    assert storage.clear() is True
    assert storage.load_record() is None
    assert not storage.has_saved(sample_product)


def test_save_failure_returns_false(tmp_path, sample_product):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    storage = DesignStorage(LocalStorage(blocker / "storage.json"))
    assert storage.save(Design(), sample_product) is False
