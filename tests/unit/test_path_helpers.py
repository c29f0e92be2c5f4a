"""Unit tests for path helper functions."""

from pathlib import Path

from smolder.paths import get_database_path, get_default_data_dir, get_project_paths


class TestGetDefaultDataDir:
    """Test the get_default_data_dir function."""

    def test_returns_path_in_current_directory(self, tmp_path: Path, monkeypatch):
        """Test that the default data dir is project local."""
        monkeypatch.chdir(tmp_path)
        data_dir = get_default_data_dir()

        assert data_dir.name == ".smolder"
        assert data_dir.parent == Path.cwd()

    def test_returns_absolute_path(self):
        """Test that returned path is absolute."""
        assert get_default_data_dir().is_absolute()


class TestGetDatabasePath:
    """Test the get_database_path function."""

    def test_default_path(self, tmp_path: Path, monkeypatch):
        """Test that the database lives in ./.smolder/smolder.db."""
        monkeypatch.chdir(tmp_path)
        db_path = get_database_path()

        assert db_path == Path.cwd() / ".smolder" / "smolder.db"

    def test_custom_data_root(self, tmp_path: Path):
        """Test using a custom data directory."""
        custom_root = tmp_path / "custom"
        assert get_database_path(data_root=custom_root) == custom_root / "smolder.db"

    def test_custom_data_root_as_string(self, tmp_path: Path):
        """Test that the data root can be provided as string."""
        db_path = get_database_path(data_root=str(tmp_path / "string_root"))

        assert db_path.parent == tmp_path / "string_root"
        assert isinstance(db_path, Path)

    def test_relative_root_made_absolute(self, tmp_path: Path, monkeypatch):
        """Test that relative data roots resolve against the current directory."""
        monkeypatch.chdir(tmp_path)
        assert get_database_path("data").is_absolute()


class TestGetProjectPaths:
    """Test the get_project_paths function."""

    def test_conventional_directories(self, tmp_path: Path):
        """Test the out/src/broadcast layout of a Foundry project."""
        paths = get_project_paths(tmp_path)

        assert paths.root == tmp_path
        assert paths.out_dir == tmp_path / "out"
        assert paths.src_dir == tmp_path / "src"
        assert paths.broadcast_dir == tmp_path / "broadcast"

    def test_defaults_to_current_directory(self, tmp_path: Path, monkeypatch):
        """Test that the project root defaults to the current directory."""
        monkeypatch.chdir(tmp_path)
        assert get_project_paths().root == Path.cwd()
