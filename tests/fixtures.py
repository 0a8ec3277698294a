from lustre_quota_backend.backend.structures import QuotaLimitSet, QuotaRecord
from lustre_quota_backend.common.structures import ClusterConfig, ServiceConfiguration

LUSTRE_ADDR = "lustre-mgs.example.com:8090"
IDENTITY_ADDR = "slurmrest.example.com:8081"

CONFIGURATION = ServiceConfiguration(
    clusters={
        "hpc1": ClusterConfig(lustre_server=LUSTRE_ADDR, identity_server=IDENTITY_ADDR),
        "hpc2": ClusterConfig(lustre_server="lustre-mgs.hpc2.example.com:8090"),
    },
    database_url="sqlite://",
    page_size=20,
    max_page_size=100,
)

DEFAULT_RECORDS = {
    "/mnt/a": QuotaRecord(
        filesystem="lustre-a",
        limits=QuotaLimitSet(
            block_soft="100G",
            block_hard="200G",
            block_grace="1w",
            file_soft="100000",
            file_hard="200000",
            file_grace="1w",
        ),
    ),
    "/mnt/b": QuotaRecord(
        filesystem="",
        limits=QuotaLimitSet(block_soft="1T", block_hard="2T"),
    ),
}

USER_RECORDS = {
    ("alice", "/mnt/a"): QuotaRecord(
        filesystem="lustre-a",
        limits=QuotaLimitSet(block_soft="none", block_hard="500G", file_soft=""),
    ),
    ("alice", "/mnt/b"): QuotaRecord(limits=QuotaLimitSet(file_hard="5000")),
    ("bob", "/mnt/a"): None,
}


def default_record(addr, mount):
    return DEFAULT_RECORDS.get(mount)


def user_record(addr, user, mount):
    return USER_RECORDS.get((user, mount))
