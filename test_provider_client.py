#!/usr/bin/env python3
"""
Tests for the provider client contract and the client registry.
"""

import unittest
from unittest.mock import patch

from gitprovidersync.config import BaseConfig, MirrorConfig
from gitprovidersync.errors import ProviderClientError
from gitprovidersync.providers import ArchiveClient, DirectoryClient, new_provider_client, register_provider_client
from gitprovidersync.providers import client as client_module
from gitprovidersync.providers.client import ProviderClient


class ListOnlyClient(ProviderClient):
    """A client that only knows how to list projects."""

    provider_type = "gitea"

    def __init__(self, config=None):
        self.config = config

    def list_projects(self, owner, owner_type, include_forks=False):
        return []


class TestProviderClientContract(unittest.TestCase):

    def test_incomplete_client_cannot_be_created(self):
        with self.assertRaises(TypeError):
            ListOnlyClient()

    def test_local_clients_accept_every_name(self):
        client = DirectoryClient()
        self.assertTrue(client.is_valid_project_name("Repo One!"))
        self.assertEqual(client.project_exists("owner", "repo"), (False, ""))
        self.assertEqual(client.name(), "directory")


class TestClientRegistry(unittest.TestCase):

    def setUp(self):
        patcher = patch.dict(client_module._CLIENT_FACTORIES)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_local_clients_registered(self):
        self.assertIsInstance(new_provider_client(MirrorConfig(provider_type="archive")), ArchiveClient)
        self.assertIsInstance(new_provider_client(MirrorConfig(provider_type="Directory")), DirectoryClient)

    def test_unknown_provider(self):
        with self.assertRaises(ProviderClientError):
            new_provider_client(BaseConfig(provider_type="bitbucket"))

    def test_incomplete_client_rejected_at_creation(self):
        register_provider_client("gitea", ListOnlyClient)

        with self.assertRaises(ProviderClientError) as raised:
            new_provider_client(BaseConfig(provider_type="gitea"))

        self.assertIsInstance(raised.exception.__cause__, TypeError)


if __name__ == '__main__':
    unittest.main()
