"""
Scope Evaluator — may this principal act on this specific document?

Invoked after the permission matrix has allowed the operation. Rules, in
precedence order:

  1. Platform SuperAdmin (a platform user with the SuperAdmin role) reaches
     any organization's documents.
  2. Otherwise the document's organization must be the principal's.
  3. Department-scoped resources additionally need a matching department,
     unless the principal is HOD, Admin or SuperAdmin.
  4. Operations the resource marks as "own" need the principal among the
     document's owners, unless the principal is Admin or SuperAdmin.

Organizations get extra guards on top: only a platform SuperAdmin deletes
or restores organizations, it may otherwise only read customer
organizations, and a platform organization is never deleted.

``evaluate_scope`` returns the denial reason (None when allowed) so the
caller can log and word the error; ``in_scope`` is the boolean contract.
``scope_filter`` produces SQL criteria so list endpoints filter instead of
deny.
"""

from sqlalchemy import and_, false, or_, true

from taskhub.services.permission_matrix import policy_for

# Denial reasons
CROSS_ORGANIZATION = "cross_organization"
CROSS_DEPARTMENT = "cross_department"
NOT_OWNER = "not_owner"
PLATFORM_READ_ONLY = "platform_read_only"
PLATFORM_ORG_DELETE = "platform_org_delete"
PLATFORM_LIFECYCLE_ONLY = "platform_lifecycle_only"


def _ids(value):
    """Normalize a scalar id, a user, or a collection of either to a set of ids."""
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        out = set()
        for item in value:
            out |= _ids(item)
        return out
    if hasattr(value, "id"):
        return {value.id}
    return {value}


def document_organization_id(document):
    if type(document).__name__ == "Organization":
        return document.id
    return getattr(document, "organization_id", None)


def is_owner(principal, document, resource) -> bool:
    for field in policy_for(resource).ownership_fields:
        if principal.user_id in _ids(getattr(document, field, None)):
            return True
    return False


def evaluate_scope(principal, resource, operation, document):
    """Return the first failed rule's reason, or None if ``document`` is in scope."""
    policy = policy_for(resource)

    if not principal.is_platform_super_admin:
        doc_org = document_organization_id(document)
        if doc_org is None or doc_org != principal.organization.id:
            return CROSS_ORGANIZATION

        if policy.department_scoped and not principal.has_cross_department_access:
            doc_dept = getattr(document, "department_id", None)
            if doc_dept is not None and doc_dept != principal.department.id:
                return CROSS_DEPARTMENT

        if operation in policy.own_operations and not principal.bypasses_ownership:
            if not is_owner(principal, document, resource):
                return NOT_OWNER

    return organization_guard(principal, resource, operation, document)


def organization_guard(principal, resource, operation, document):
    """Extra rules that apply to organization documents whatever the scope."""
    if resource != "organizations" or document is None:
        return None
    if operation in ("delete", "restore"):
        if not principal.is_platform_super_admin:
            return PLATFORM_LIFECYCLE_ONLY
        if document.is_platform_org and operation == "delete":
            return PLATFORM_ORG_DELETE
        return None
    if (
        principal.is_platform_super_admin
        and not document.is_platform_org
        and operation != "read"
    ):
        return PLATFORM_READ_ONLY
    return None


def in_scope(principal, resource, operation, document) -> bool:
    return evaluate_scope(principal, resource, operation, document) is None


def scope_filter(principal, model, resource, operation="read"):
    """SQL criterion restricting ``model`` rows to what ``principal`` may see.

    Mirrors ``evaluate_scope`` for list endpoints. Ownership is applied only
    for scalar or recipient ownership; collection-valued task ownership is
    not used for ``read``.
    """
    if principal.is_platform_super_admin:
        return true()

    if model.__name__ == "Organization":
        return model.id == principal.organization.id

    criteria = [model.organization_id == principal.organization.id]
    policy = policy_for(resource)

    if policy.department_scoped and not principal.has_cross_department_access:
        criteria.append(model.department_id == principal.department.id)

    if operation in policy.own_operations and not principal.bypasses_ownership:
        owner_clause = _owner_clause(principal, model, policy)
        criteria.append(owner_clause if owner_clause is not None else false())

    return and_(*criteria)


def _owner_clause(principal, model, policy):
    clauses = []
    for field in policy.ownership_fields:
        if field == "recipient_ids" and hasattr(model, "recipients"):
            clauses.append(model.recipients.any(user_id=principal.user_id))
            continue
        column = getattr(model, field, None)
        if column is not None and field.endswith("id"):
            clauses.append(column == principal.user_id)
    if not clauses:
        return None
    return or_(*clauses)
