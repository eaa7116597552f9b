from enum import Enum


class UserRole(str, Enum):
    admin = "admin"
    teacher = "teacher"
    student = "student"
    hybrid = "hybrid"


class UserStatus(str, Enum):
    active = "active"
    banned = "banned"
    deleted = "deleted"


class AuditAction(str, Enum):
    create = "CREATE"
    read = "READ"
    update = "UPDATE"
    delete = "DELETE"
    login = "LOGIN"
    logout = "LOGOUT"
    access = "ACCESS"
    download = "DOWNLOAD"
    submit = "SUBMIT"


class AuditOutcome(str, Enum):
    success = "Success"
    failed = "Failed"


class LoginStatus(str, Enum):
    success = "success"
    failed = "failed"


class DeviceType(str, Enum):
    desktop = "Desktop"
    mobile = "Mobile"
    tablet = "Tablet"
