"""Database credentials: generated password, Secrets Manager secret, and the instance's view of both."""

from dataclasses import dataclass
import json
import string

import pulumi
import pulumi_aws
import pulumi_random

PASSWORD_EXCLUDE_CHARACTERS = "\"@/\\ '"
PASSWORD_LENGTH = 30
PASSWORD_KEY = "password"


@dataclass(frozen=True)
class SecretSpec:
    """Recipe for the credentials secret. Carries the username only, never a password."""

    name: str
    description: str
    username: str
    exclude_characters: str = PASSWORD_EXCLUDE_CHARACTERS
    password_length: int = PASSWORD_LENGTH
    generate_string_key: str = PASSWORD_KEY

    @property
    def template(self) -> dict[str, str]:
        return {"username": self.username}

    @property
    def secret_string_template(self) -> str:
        return json.dumps(self.template)

    @property
    def special_characters(self) -> str:
        """Punctuation the generator may use once excluded characters are removed."""
        return "".join(c for c in string.punctuation if c not in self.exclude_characters)


@dataclass(frozen=True)
class CredentialRef:
    """What the instance borrows: the secret, the username, and the generated password output."""

    spec: SecretSpec
    secret: pulumi_aws.secretsmanager.Secret
    password: pulumi.Output[str]

    @property
    def username(self) -> str:
        return self.spec.username


def build_secret_spec(db_name: str, username: str = "dbadmin") -> SecretSpec:
    """Derive the secret name and description from db_name; raise ValueError when it is empty."""
    if not db_name:
        raise ValueError("dbName is required")
    return SecretSpec(
        name=f"{db_name}PostgresCredentials",
        # Description text (including its spelling) matches secrets already deployed.
        description=f"{db_name}Postgres Database Crendetials",
        username=username,
    )


def create_database_credentials(
    stack_name: str,
    spec: SecretSpec,
    aws_provider: pulumi_aws.Provider,
) -> CredentialRef:
    """Create the secret and its generated password.

    The secret value itself is written later by attach_secret_to_instance,
    once the instance address is known.
    """
    password = pulumi_random.RandomPassword(
        f"{stack_name}_db_password",
        length=spec.password_length,
        special=True,
        override_special=spec.special_characters,
    )
    secret = pulumi_aws.secretsmanager.Secret(
        f"{stack_name}_db_credentials",
        name=spec.name,
        description=spec.description,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return CredentialRef(spec=spec, secret=secret, password=password.result)


def _secret_document(
    spec: SecretSpec,
    password: str,
    host: str,
    port: int,
    db_name: str,
    identifier: str,
) -> str:
    document = dict(spec.template)
    document[spec.generate_string_key] = password
    document.update(
        {
            "engine": "postgres",
            "host": host,
            "port": port,
            "dbname": db_name,
            "dbInstanceIdentifier": identifier,
        }
    )
    return json.dumps(document)


def attach_secret_to_instance(
    stack_name: str,
    credentials: CredentialRef,
    instance: pulumi_aws.rds.Instance,
    aws_provider: pulumi_aws.Provider,
    rotation_enabled: bool = False,
) -> pulumi_aws.secretsmanager.SecretVersion:
    """Write username, password and connection attributes into the secret.

    Single-user rotation reads host/port/dbname from this document. Once
    rotation owns the password, later runs leave the stored value alone.
    """
    secret_string = pulumi.Output.all(
        credentials.password,
        instance.address,
        instance.port,
        instance.db_name,
        instance.identifier,
    ).apply(lambda args: _secret_document(credentials.spec, *args))
    return pulumi_aws.secretsmanager.SecretVersion(
        f"{stack_name}_db_credentials_version",
        secret_id=credentials.secret.id,
        secret_string=pulumi.Output.secret(secret_string),
        opts=pulumi.ResourceOptions(
            provider=aws_provider,
            ignore_changes=["secret_string"] if rotation_enabled else None,
        ),
    )
