"""
Service context for log lines: which service, which environment, which process.
"""

from functools import lru_cache
import os


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'slot-booking')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Container hostname in docker/k8s, PID locally
    instance_id = os.getenv('HOSTNAME', '')[:12] or str(os.getpid())

    return f'{service_name}@{deploy_env}:{instance_id}'
