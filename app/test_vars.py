import importlib


def test_log_skip_paths_parsing(monkeypatch):
    monkeypatch.setenv("LOG_SKIP_PATHS", "/metrics, /health,,")
    import app.vars as vars_module

    importlib.reload(vars_module)

    assert vars_module.LOG_SKIP_PATHS == ["/metrics", "/health"]


def test_config_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("RELAY_CONFIG_DIR", str(tmp_path))
    import app.vars as vars_module

    importlib.reload(vars_module)

    assert vars_module.RELAY_CONFIG_DIR == str(tmp_path)


def teardown_function(_):
    import app.vars as vars_module

    importlib.reload(vars_module)
