"""Error taxonomy and structured error reporting for git-provider-sync."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    AUTHENTICATION = "authentication"
    GIT_OPERATION = "git_operation"
    WORKSPACE = "workspace"
    REMOTE = "remote"
    ARCHIVE = "archive"
    PROVIDER = "provider"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class GitProviderSyncError(Exception):
    """Base class for every error raised by the mirroring engine."""

    error_code = "SYNC_ERROR"
    category = ErrorCategory.SYSTEM
    default_message = "git-provider-sync operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


# Authentication

class InvalidAuthError(GitProviderSyncError):
    error_code = "INVALID_AUTH_CONFIG"
    category = ErrorCategory.AUTHENTICATION
    default_message = "invalid authentication configuration"


class SSHPermissionDeniedError(GitProviderSyncError):
    error_code = "SSH_PERMISSION_DENIED"
    category = ErrorCategory.AUTHENTICATION
    default_message = "failed with permission denied (publickey). Provide correct key in your ssh-agent"


# Git operations

class CloneError(GitProviderSyncError):
    error_code = "CLONE_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to clone repository"


class PullError(GitProviderSyncError):
    error_code = "PULL_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to pull repository"


class PushError(GitProviderSyncError):
    error_code = "PUSH_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to push to target repository"


class FetchError(GitProviderSyncError):
    error_code = "FETCH_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to fetch branches"


class BranchCheckoutError(GitProviderSyncError):
    error_code = "BRANCH_CHECKOUT_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to checkout branch"


class HeadSetError(GitProviderSyncError):
    error_code = "HEAD_SET_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to set HEAD reference"


class RepoInitializationError(GitProviderSyncError):
    error_code = "REPO_INIT_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "failed to initialize target repository"


class GitBinaryNotFoundError(GitProviderSyncError):
    error_code = "GIT_BINARY_NOT_FOUND"
    category = ErrorCategory.SYSTEM
    default_message = "failed to find a Git executable"


class CommandTimeoutError(GitProviderSyncError):
    error_code = "GIT_COMMAND_TIMEOUT"
    category = ErrorCategory.GIT_OPERATION
    default_message = "git command timed out"


class CommandCancelledError(GitProviderSyncError):
    error_code = "GIT_COMMAND_CANCELLED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "git command cancelled"


class GitCommandFailedError(GitProviderSyncError):
    error_code = "GIT_COMMAND_FAILED"
    category = ErrorCategory.GIT_OPERATION
    default_message = "git command failed"

    def __init__(self, message: Optional[str] = None, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


# Workspace

class OpenRepositoryError(GitProviderSyncError):
    error_code = "REPO_OPEN_FAILED"
    category = ErrorCategory.WORKSPACE
    default_message = "failed to open repository"


class WorktreeError(GitProviderSyncError):
    error_code = "WORKTREE_ACCESS_FAILED"
    category = ErrorCategory.WORKSPACE
    default_message = "failed to access repository worktree"


class UncleanWorkspaceError(GitProviderSyncError):
    error_code = "UNCLEAN_WORKSPACE"
    category = ErrorCategory.WORKSPACE
    default_message = "workspace is unclean, aborting"


class DirectoryCreationError(GitProviderSyncError):
    error_code = "DIRECTORY_CREATE_FAILED"
    category = ErrorCategory.WORKSPACE
    default_message = "failed to create target directory"


class StagingDirectoryError(GitProviderSyncError):
    error_code = "STAGING_DIR_FAILED"
    category = ErrorCategory.WORKSPACE
    default_message = "failed to manage staging directory"


# Remotes

class RemoteCreationError(GitProviderSyncError):
    error_code = "REMOTE_CREATION_FAILED"
    category = ErrorCategory.REMOTE
    default_message = "failed to set remote in repository"


class RemoteNotFoundError(GitProviderSyncError):
    error_code = "REMOTE_NOT_FOUND"
    category = ErrorCategory.REMOTE
    default_message = "remote not found"


class RemoteMismatchError(GitProviderSyncError):
    error_code = "REMOTE_MISMATCH"
    category = ErrorCategory.REMOTE
    default_message = "mismatch in gpsupstream vs origin remote"


class UpstreamRemoteError(GitProviderSyncError):
    error_code = "UPSTREAM_REMOTE_MISSING"
    category = ErrorCategory.REMOTE
    default_message = "failed to get gpsupstream remote"


# Archive

class NoFilesToArchiveError(GitProviderSyncError):
    error_code = "NO_FILES_TO_ARCHIVE"
    category = ErrorCategory.ARCHIVE
    default_message = "no files found to archive"


class ArchiveCreationError(GitProviderSyncError):
    error_code = "ARCHIVE_CREATION_FAILED"
    category = ErrorCategory.ARCHIVE
    default_message = "failed to create archive file"


# Provider

class InvalidRepositoryNameError(GitProviderSyncError):
    error_code = "INVALID_REPOSITORY_NAME"
    category = ErrorCategory.PROVIDER
    default_message = "invalid repository name"


class CreateProjectError(GitProviderSyncError):
    error_code = "PROJECT_CREATION_FAILED"
    category = ErrorCategory.PROVIDER
    default_message = "failed to create repository"


class DefaultBranchError(GitProviderSyncError):
    error_code = "DEFAULT_BRANCH_SET_FAILED"
    category = ErrorCategory.PROVIDER
    default_message = "failed to set default branch"


class ProtectionError(GitProviderSyncError):
    error_code = "PROTECTION_FAILED"
    category = ErrorCategory.PROVIDER
    default_message = "failed to change project protection"


class PushChangesError(GitProviderSyncError):
    error_code = "PUSH_CHANGES_FAILED"
    category = ErrorCategory.PROVIDER
    default_message = "failed to push changes"


class VisibilityMappingError(GitProviderSyncError):
    error_code = "VISIBILITY_MAPPING_FAILED"
    category = ErrorCategory.PROVIDER
    default_message = "failed to map visibility"


class InvalidProjectInfoError(GitProviderSyncError):
    error_code = "INVALID_PROJECT_INFO"
    category = ErrorCategory.PROVIDER
    default_message = "empty OriginalName"


class ProviderClientError(GitProviderSyncError):
    error_code = "PROVIDER_CLIENT_FAILED"
    category = ErrorCategory.CONFIGURATION
    default_message = "failed to initialize provider client"


@dataclass
class ErrorResponse:
    """Standardized error record for a failed sync stage."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Turns exceptions raised during a run into structured, logged records."""

    def __init__(self):
        self.logger = logging.getLogger('gitprovidersync.error_handler')

    def handle_sync_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle an error that aborted a sync run."""
        context = context or {}

        if isinstance(error, GitProviderSyncError):
            error_code = error.error_code
            category = error.category.value
        elif isinstance(error, PermissionError):
            error_code = "FILE_PERMISSION_DENIED"
            category = ErrorCategory.WORKSPACE.value
        elif isinstance(error, OSError):
            error_code = "FILE_IO_ERROR"
            category = ErrorCategory.WORKSPACE.value
        else:
            error_code = "SYNC_UNEXPECTED_ERROR"
            category = ErrorCategory.SYSTEM.value

        message = str(error)
        cause = error.__cause__
        while cause is not None:
            message = f"{message}: {cause}"
            cause = cause.__cause__

        error_response = ErrorResponse(
            error="Sync run failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=category,
            context=context
        )

        self.logger.error(
            f"Sync error: {message}",
            extra={
                'operation': 'sync_error',
                'error_code': error_code,
                'repository': context.get('repository'),
                'target': context.get('target')
            }
        )

        return error_response


# Initialize global error handler
error_handler = ErrorHandler()
