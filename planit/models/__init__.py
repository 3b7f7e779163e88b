from planit.models.contracts import (  # noqa: F401
    Contract,
    ContractActivity,
    FieldType,
    SignatureAudit,
    SignatureField,
    SignerRole,
    StorageMethod,
    WorkflowStatus,
)
