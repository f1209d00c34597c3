from accounting import TokenStore


def test_save_load_clear(tmp_path):
    store = TokenStore(path=tmp_path / "nested" / "auth.json")
    assert store.load() is None

    store.save("first")
    store.save("second")
    assert store.load() == "second"
    assert TokenStore(path=tmp_path / "nested" / "auth.json").load() == "second"

    store.clear()
    assert store.load() is None


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "auth.json"
    path.write_text("{not json", encoding="utf-8")
    store = TokenStore(path=path)
    assert store.load() is None

    store.save("fresh")
    assert store.load() == "fresh"


def test_other_keys_are_preserved(tmp_path):
    path = tmp_path / "auth.json"
    TokenStore(path=path, key="other").save("keep-me")
    store = TokenStore(path=path)
    store.save("token")
    store.clear()
    assert TokenStore(path=path, key="other").load() == "keep-me"
