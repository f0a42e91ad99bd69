#!/usr/bin/env python3
"""
Tests for visibility translation between providers.
"""

import unittest

from gitprovidersync.config import GITEA, GITHUB, GITLAB
from gitprovidersync.errors import VisibilityMappingError
from gitprovidersync.providers.visibility import map_visibility


class TestMapVisibility(unittest.TestCase):
    """Test cases for map_visibility()."""

    def test_same_provider_is_identity(self):
        for provider in (GITHUB, GITLAB, GITEA, "archive"):
            for visibility in ("public", "private", "internal", "limited", "whatever"):
                with self.subTest(provider=provider, visibility=visibility):
                    self.assertEqual(map_visibility(provider, provider, visibility), visibility)

    def test_gitlab_internal_to_github(self):
        self.assertEqual(map_visibility("gitlab", "github", "internal"), "private")

    def test_gitea_limited_to_gitlab(self):
        self.assertEqual(map_visibility("gitea", "gitlab", "limited"), "private")

    def test_public_stays_public(self):
        self.assertEqual(map_visibility("github", "gitea", "public"), "public")

    def test_provider_names_are_case_insensitive(self):
        self.assertEqual(map_visibility("GitLab", "GITHUB", "Internal"), "private")

    def test_unknown_source_provider(self):
        with self.assertRaises(VisibilityMappingError):
            map_visibility("bitbucket", "github", "public")

    def test_unknown_target_provider(self):
        with self.assertRaises(VisibilityMappingError):
            map_visibility("github", "bitbucket", "public")

    def test_unknown_visibility_value(self):
        with self.assertRaises(VisibilityMappingError):
            map_visibility("github", "gitlab", "internal")


if __name__ == '__main__':
    unittest.main()
