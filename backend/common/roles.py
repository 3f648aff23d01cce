"""
角色层级策略
SUPER_ADMIN > DIRECTOR > LEADER > SALES > AGENT
数值越小权限越高，所有"谁能操作谁"的判断都走这里
"""
from enum import IntEnum

from common.errors import PermissionDenied


class UserRole(IntEnum):
    SUPER_ADMIN = 0  # 超级管理员
    DIRECTOR = 1     # 销售总监
    LEADER = 2       # 销售组长
    SALES = 3        # 销售
    AGENT = 4        # 代理

    @property
    def code(self) -> str:
        return self.name.lower()

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def from_code(cls, code: str) -> "UserRole":
        """根据角色代码获取角色，未知代码抛出 ValueError"""
        try:
            return cls[code.upper()]
        except (KeyError, AttributeError):
            raise ValueError(f"未知角色代码: {code}")


_DESCRIPTIONS = {
    UserRole.SUPER_ADMIN: "超级管理员",
    UserRole.DIRECTOR: "销售总监",
    UserRole.LEADER: "销售组长",
    UserRole.SALES: "销售",
    UserRole.AGENT: "代理",
}


def outranks(actor: UserRole, target: UserRole) -> bool:
    """actor 是否严格高于 target"""
    return UserRole(actor) < UserRole(target)


def can_create(actor: UserRole, target: UserRole) -> bool:
    """检查操作者是否可以创建目标角色的用户"""
    return outranks(actor, target)


def can_access(actor: UserRole, resource_owner: UserRole) -> bool:
    """检查操作者是否可以查看/修改目标角色的数据（同级不可见）"""
    return outranks(actor, resource_owner)


def creatable_roles(actor: UserRole) -> list[UserRole]:
    """操作者可以创建的全部角色"""
    return [role for role in UserRole if can_create(actor, role)]


def ensure_can_create(actor: UserRole, target: UserRole) -> None:
    if not can_create(actor, target):
        raise PermissionDenied(
            f"{UserRole(actor).description}无权创建{UserRole(target).description}"
        )


def ensure_can_access(actor: UserRole, resource_owner: UserRole) -> None:
    if not can_access(actor, resource_owner):
        raise PermissionDenied("无权访问该用户数据")
