from pathlib import Path

_project_root = Path(__file__).parent.parent


class TestDocsHygiene:
    def test_readme_exists_for_package_metadata(self):
        readme = _project_root / "README.md"
        assert readme.exists(), "README.md is required by pyproject metadata"
        text = readme.read_text(encoding="utf-8", errors="replace")
        assert "# textdag" in text

    def test_readme_config_matches_default(self):
        import textdag.config

        readme = (_project_root / "README.md").read_text(encoding="utf-8", errors="replace")
        for line in textdag.config.DEFAULT_CONFIG_TEXT.splitlines():
            if line.strip():
                assert line.strip() in readme, f"README config block is missing {line!r}"
