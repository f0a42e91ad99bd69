#!/usr/bin/env python3
"""
Tests for the run loop, workspace lifecycle and an end-to-end mirror run
into directory and archive targets.
"""

import shutil
import tarfile
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from gitprovidersync.config import (
    AppConfiguration, Config, MirrorConfig, RunOptions, SyncConfig, ARCHIVE, DIRECTORY
)
from gitprovidersync.errors import (
    CommandCancelledError, InvalidRepositoryNameError, ProviderClientError, StagingDirectoryError
)
from gitprovidersync.model import ProjectInfo, INVALID, UPTODATE
from gitprovidersync.providers import new_provider_client
from gitprovidersync.runner import (
    WORKSPACE_PREFIX, create_workspace, main, remove_workspace, sync
)

from git_test_utils import create_upstream_repository, git, local_branches


class TestWorkspace(unittest.TestCase):
    """Test cases for staging workspace creation and removal."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_create_and_remove(self):
        workspace = create_workspace(Config(tmp_dir=self.temp_dir))

        self.assertTrue(workspace.is_dir())
        self.assertTrue(workspace.name.startswith(WORKSPACE_PREFIX))

        remove_workspace(workspace, self.temp_dir)
        self.assertFalse(workspace.exists())

    def test_refuses_paths_outside_parent(self):
        outside = Path(tempfile.mkdtemp())
        try:
            with self.assertRaises(StagingDirectoryError):
                remove_workspace(outside, self.temp_dir)
            self.assertTrue(outside.exists())
        finally:
            shutil.rmtree(outside)

    def test_refuses_parent_itself(self):
        with self.assertRaises(StagingDirectoryError):
            remove_workspace(self.temp_dir, self.temp_dir)


class TestSyncRun(unittest.TestCase):
    """Test cases for sync() with mocked provider clients."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.tmp_parent = self.temp_dir / "tmp"
        self.upstream = create_upstream_repository(self.temp_dir)

        self.source_client = MagicMock()
        self.source_client.list_projects.return_value = [ProjectInfo(
            original_name="Repo One!",
            https_url=str(self.upstream),
            description="Test project",
            default_branch="main",
            visibility="private",
        )]

        self.mirrors_dir = self.temp_dir / "mirrors"
        self.backups_dir = self.temp_dir / "backups"
        self.app_config = AppConfiguration(environments={"default": {"gitlab": SyncConfig(
            provider_type="gitlab",
            owner="group",
            mirrors={
                "local": MirrorConfig(provider_type=DIRECTORY, path=str(self.mirrors_dir)),
                "backup": MirrorConfig(provider_type=ARCHIVE, path=str(self.backups_dir)),
            }
        )}})

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def client_factory(self, cfg):
        if cfg.provider_type in (DIRECTORY, ARCHIVE):
            return new_provider_client(cfg)
        return self.source_client

    def run_sync(self, options=None, **config_kwargs):
        config = Config(tmp_dir=self.tmp_parent, **config_kwargs)
        return sync(self.app_config, config, options or RunOptions(ascii_name=True),
                    client_factory=self.client_factory)

    def test_end_to_end_directory_and_archive(self):
        results = self.run_sync()

        self.assertEqual([meta.target for meta in results], ["local", "backup"])
        self.assertTrue(all(meta.total == 1 for meta in results))
        self.assertTrue(all(meta.source == "gitlab" for meta in results))

        copy = self.mirrors_dir / "Repo-One"
        self.assertTrue((copy / "README.md").exists())
        self.assertEqual(local_branches(copy), {"main", "dev"})
        self.assertEqual(git(copy, "remote", "get-url", "origin").strip(), str(self.upstream))

        archives = list(self.backups_dir.glob("Repo-One_*.tar.gz"))
        self.assertEqual(len(archives), 1)
        with tarfile.open(archives[0], "r:gz") as tar:
            self.assertIn("Repo-One/HEAD", tar.getnames())
        self.assertEqual(list(self.backups_dir.iterdir()), archives)

        self.assertEqual(list(self.tmp_parent.iterdir()), [])

    def test_second_run_is_up_to_date(self):
        self.run_sync()
        results = self.run_sync()

        directory_meta = results[0]
        self.assertEqual(directory_meta.failures(UPTODATE), ["Repo-One"])
        self.assertEqual(directory_meta.total, 1)
        self.assertEqual(len(list(self.backups_dir.glob("Repo-One_*.tar.gz"))), 2)

    def test_keep_workspace(self):
        self.run_sync(keep_workspace=True)

        workspaces = list(self.tmp_parent.iterdir())
        self.assertEqual(len(workspaces), 1)
        self.assertTrue((workspaces[0] / "Repo-One").is_dir())

    @patch('gitprovidersync.runner.clone_repositories')
    def test_dry_run_does_not_clone(self, mock_clone):
        results = self.run_sync(RunOptions(dry_run=True))

        self.assertEqual(results, [])
        mock_clone.assert_not_called()
        self.assertFalse(self.mirrors_dir.exists())
        self.assertEqual(list(self.tmp_parent.iterdir()), [])

    def test_error_is_reported_and_raised(self):
        self.app_config.environments["default"]["gitlab"].mirrors = {
            "hub": MirrorConfig(provider_type="github", owner="org"),
        }
        hub_client = MagicMock()
        hub_client.is_valid_project_name.return_value = False

        def factory(cfg):
            return hub_client if cfg.provider_type == "github" else self.source_client

        with patch('gitprovidersync.runner.error_handler') as mock_handler:
            with self.assertRaises(InvalidRepositoryNameError):
                sync(self.app_config, Config(tmp_dir=self.tmp_parent), RunOptions(), client_factory=factory)

        mock_handler.handle_sync_error.assert_called_once()
        context = mock_handler.handle_sync_error.call_args.args[1]
        self.assertEqual(context, {'environment': 'default', 'source': 'gitlab'})
        self.assertEqual(list(self.tmp_parent.iterdir()), [])

    def test_invalid_names_skipped_by_policy(self):
        self.app_config.environments["default"]["gitlab"].mirrors = {
            "hub": MirrorConfig(provider_type="github", owner="org"),
        }
        hub_client = MagicMock()
        hub_client.is_valid_project_name.return_value = False

        def factory(cfg):
            return hub_client if cfg.provider_type == "github" else self.source_client

        results = sync(self.app_config, Config(tmp_dir=self.tmp_parent),
                       RunOptions(ignore_invalid_name=True), client_factory=factory)

        self.assertEqual(results[0].failures(INVALID), ["Repo One!"])
        self.assertEqual(results[0].total, 0)

    def test_cancelled_run(self):
        cancel_event = MagicMock()
        cancel_event.is_set.return_value = True

        with self.assertRaises(CommandCancelledError):
            sync(self.app_config, Config(tmp_dir=self.tmp_parent), RunOptions(),
                 cancel_event=cancel_event, client_factory=self.client_factory)

        self.assertEqual(list(self.tmp_parent.iterdir()), [])

    @patch('gitprovidersync.runner.remove_workspace')
    def test_cleanup_failure_keeps_run_error(self, mock_remove):
        mock_remove.side_effect = StagingDirectoryError("failed to remove staging workspace")
        self.source_client.list_projects.side_effect = RuntimeError("HTTP 500")

        with self.assertRaises(ProviderClientError):
            self.run_sync()

        mock_remove.assert_called_once()

    @patch('gitprovidersync.runner.remove_workspace')
    def test_cleanup_failure_after_successful_run(self, mock_remove):
        mock_remove.side_effect = StagingDirectoryError("failed to remove staging workspace")

        with self.assertRaises(StagingDirectoryError):
            self.run_sync(RunOptions(dry_run=True))


class TestMain(unittest.TestCase):

    @patch('gitprovidersync.runner.setup_logging')
    def test_invalid_configuration(self, mock_logging):
        self.assertEqual(main(AppConfiguration()), 1)

    @patch('gitprovidersync.runner.signal.signal')
    @patch('gitprovidersync.runner.sync')
    @patch('gitprovidersync.runner.setup_logging')
    def test_successful_run(self, mock_logging, mock_sync, mock_signal):
        mock_sync.return_value = []
        app_config = AppConfiguration(environments={"default": {"gitlab": SyncConfig(
            provider_type="gitlab", owner="group",
            mirrors={"backup": MirrorConfig(provider_type=ARCHIVE, path="/backups")},
        )}})

        self.assertEqual(main(app_config), 0)
        mock_sync.assert_called_once()
        mock_signal.assert_called_once()

    @patch('gitprovidersync.runner.signal.signal')
    @patch('gitprovidersync.runner.sync', side_effect=InvalidRepositoryNameError("invalid project name"))
    @patch('gitprovidersync.runner.setup_logging')
    def test_failed_run(self, mock_logging, mock_sync, mock_signal):
        app_config = AppConfiguration(environments={"default": {"gitlab": SyncConfig(
            provider_type="gitlab", owner="group",
            mirrors={"backup": MirrorConfig(provider_type=ARCHIVE, path="/backups")},
        )}})
        self.assertEqual(main(app_config), 1)


if __name__ == '__main__':
    unittest.main()
