"""
Postgres stack: declares one PostgreSQL instance and everything it needs
(security group, credentials secret, parameter group, rotation) from a stack
YAML file, then exports its endpoint, username and database name.
"""

from pgstack.config import create_aws_provider, load_postgres_config
from pgstack.outputs import export_outputs
from pgstack.provision import provision_postgres

config = load_postgres_config()
aws_provider = create_aws_provider(config.stack_name, config.region)

ctx = provision_postgres(config, aws_provider)
export_outputs(ctx.exports)
