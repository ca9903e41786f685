"""AWS credentials providers."""

import logging
from typing import Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError
from pydantic import BaseModel, ConfigDict, SecretStr

from ..errors import CredentialResolutionError
from .properties import PropertyStore

logger = logging.getLogger(__name__)

ACCESS_KEY_ID = "awsAccessKeyId"
SECRET_ACCESS_KEY = "awsSecretAccessKey"
SESSION_TOKEN = "awsSessionToken"


class AWSCredentials(BaseModel):
    """Resolved, frozen AWS credentials."""
    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: SecretStr
    session_token: Optional[SecretStr] = None

    def client_kwargs(self) -> dict:
        """Keyword arguments for ``boto3.client``."""
        kwargs = {
            'aws_access_key_id': self.access_key_id,
            'aws_secret_access_key': self.secret_access_key.get_secret_value(),
        }
        if self.session_token is not None:
            kwargs['aws_session_token'] = self.session_token.get_secret_value()
        return kwargs


class CredentialsProvider(Protocol):
    """Anything that yields usable credentials synchronously."""

    def resolve(self) -> AWSCredentials:
        ...


class StaticCredentialsProvider:
    """Credentials given directly, e.g. from the configuration file."""

    def __init__(self, access_key_id: str, secret_access_key: str, session_token: Optional[str] = None):
        self._credentials = AWSCredentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
        )

    def resolve(self) -> AWSCredentials:
        return self._credentials


class DefaultCredentialsProvider:
    """Resolves credentials through the boto3 standard chain (env, profile, IAM role)."""

    def __init__(self, region_name: Optional[str] = None, profile_name: Optional[str] = None):
        self.region_name = region_name
        self.profile_name = profile_name

    def resolve(self) -> AWSCredentials:
        try:
            session = boto3.Session(profile_name=self.profile_name, region_name=self.region_name)
            credentials = session.get_credentials()
        except BotoCoreError as e:
            raise CredentialResolutionError(f"Could not resolve AWS credentials: {e}", cause=e) from e

        if credentials is None:
            raise CredentialResolutionError(
                "No AWS credentials found in the environment, shared config or instance metadata; "
                f"set {ACCESS_KEY_ID}/{SECRET_ACCESS_KEY} or configure the standard credential chain"
            )

        frozen = credentials.get_frozen_credentials()
        logger.debug(f"Resolved AWS credentials via {getattr(credentials, 'method', 'unknown')}")
        return AWSCredentials(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )


def provider_from_properties(properties: PropertyStore) -> Optional[CredentialsProvider]:
    """Static provider when the configuration carries keys, otherwise None."""
    access_key = properties.get_string(ACCESS_KEY_ID)
    secret_key = properties.get_string(SECRET_ACCESS_KEY)
    if not access_key and not secret_key:
        return None
    if not access_key or not secret_key:
        raise CredentialResolutionError(
            f"Both {ACCESS_KEY_ID} and {SECRET_ACCESS_KEY} must be set to use static credentials"
        )
    return StaticCredentialsProvider(access_key, secret_key, properties.get_string(SESSION_TOKEN) or None)


def resolve_credentials(provider: CredentialsProvider) -> AWSCredentials:
    """Resolve credentials, normalizing unexpected failures to CredentialResolutionError."""
    try:
        return provider.resolve()
    except CredentialResolutionError:
        raise
    except Exception as e:
        raise CredentialResolutionError(f"Credentials provider failed: {e}", cause=e) from e
