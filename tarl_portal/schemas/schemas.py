"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any, Literal, Union, Annotated
from datetime import datetime


ACTION_NAMES = ("view", "create", "update", "delete", "export", "bulk_update")


# ---- Role ----
class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    hierarchy_level: int = Field(4, ge=0)
    can_manage_hierarchy: bool = False
    max_hierarchy_depth: int = Field(0, ge=0)
    description: Optional[str] = None

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    hierarchy_level: Optional[int] = Field(None, ge=0)
    can_manage_hierarchy: Optional[bool] = None
    max_hierarchy_depth: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None

class RoleOut(BaseModel):
    id: int
    name: str
    hierarchy_level: int
    can_manage_hierarchy: bool
    max_hierarchy_depth: int
    description: Optional[str] = None

    class Config:
        from_attributes = True


# ---- Page ----
class PageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    path: str = Field(..., min_length=1, max_length=255)
    title: Optional[str] = None
    title_kh: Optional[str] = None
    icon_name: Optional[str] = None
    parent_page_id: Optional[int] = None
    sort_order: int = 0
    is_displayed_in_menu: bool = True

class PageUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    path: Optional[str] = Field(None, min_length=1, max_length=255)
    title: Optional[str] = None
    title_kh: Optional[str] = None
    icon_name: Optional[str] = None
    parent_page_id: Optional[int] = None
    sort_order: Optional[int] = None
    is_displayed_in_menu: Optional[bool] = None

    @field_validator("name", "path", "sort_order", "is_displayed_in_menu")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

class PageOut(BaseModel):
    id: int
    name: str
    path: str
    title: Optional[str] = None
    title_kh: Optional[str] = None
    icon_name: Optional[str] = None
    parent_page_id: Optional[int] = None
    sort_order: int
    is_parent_menu: bool
    menu_level: int
    is_displayed_in_menu: bool

    class Config:
        from_attributes = True

class PageOrderItem(BaseModel):
    page_id: int
    sort_order: int

class PageOrderRequest(BaseModel):
    items: List[PageOrderItem] = Field(..., min_length=1)


# ---- Page permissions ----
class PagePermissionItem(BaseModel):
    page_id: int
    can_access: bool

class PagePermissionBatch(BaseModel):
    role_id: int
    permissions: List[PagePermissionItem]

class PagePermissionOut(BaseModel):
    id: int
    role: str
    page_id: int
    page_name: str
    page_path: str
    can_access: bool
    updated_at: Optional[datetime] = None

class PageAccessResponse(BaseModel):
    page_name: str
    role: str
    can_access: bool


# ---- Action permissions ----
class ActionCheckRequest(BaseModel):
    page_name: str = Field(..., min_length=1)
    action_name: str = Field(..., min_length=1)
    user_role: Optional[str] = None

class ActionCheckResponse(BaseModel):
    can_perform: bool
    user_role: str
    page_name: str
    action_name: str

class ActionBatchResponse(BaseModel):
    permissions: Dict[str, bool]
    user_role: str
    page_name: str

class ActionPermissionItem(BaseModel):
    action_name: str
    is_allowed: bool

class ActionPermissionBatch(BaseModel):
    page_id: int
    role: str = Field(..., min_length=1)
    actions: List[ActionPermissionItem]

class ActionPermissionOut(BaseModel):
    id: int
    page_id: int
    page_name: str
    page_path: str
    role: str
    action_name: str
    is_allowed: bool

class PageActionMatrix(BaseModel):
    page_name: str
    page_path: str
    actions: Dict[str, bool]

class BatchResult(BaseModel):
    role: str
    changed: int
    unchanged: int
    audit_id: int


# ---- Menu ----
class MenuNode(BaseModel):
    id: int
    name: str
    label: str
    path: str
    icon: Optional[str] = None
    parent_page_id: Optional[int] = None
    sort_order: int = 0
    children: List["MenuNode"] = Field(default_factory=list)

class MenuResponse(BaseModel):
    menu_items: List[MenuNode]
    user_role: str
    total_allowed: int


# ---- Hierarchy ----
class UserHierarchy(BaseModel):
    user_id: int
    role: str
    hierarchy_level: int
    can_manage_hierarchy: bool = False
    max_hierarchy_depth: int = 0
    unrestricted: bool = False
    individual_access: bool = True
    accessible_zones: List[int] = Field(default_factory=list)
    accessible_provinces: List[int] = Field(default_factory=list)
    accessible_districts: List[int] = Field(default_factory=list)
    accessible_schools: List[int] = Field(default_factory=list)
    accessible_classes: List[int] = Field(default_factory=list)

class HierarchyAssignRequest(BaseModel):
    user_id: int
    level: Literal["zone", "province", "district", "school", "class"]
    target_id: int

class SchoolOut(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    district_id: Optional[int] = None
    province_id: Optional[int] = None
    zone_id: Optional[int] = None

    class Config:
        from_attributes = True

class StudentOut(BaseModel):
    id: int
    full_name: str
    school_id: int
    class_id: Optional[int] = None

    class Config:
        from_attributes = True

class ObservationOut(BaseModel):
    id: int
    school_id: int
    class_id: Optional[int] = None
    created_by: int
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# ---- Audit metadata ----
class PageChangeItem(BaseModel):
    page_id: int
    previous: Optional[bool] = None
    new: bool

class PermissionBatchMetadata(BaseModel):
    kind: Literal["page_permission_batch"] = "page_permission_batch"
    role_id: int
    changes: List[PageChangeItem] = Field(default_factory=list)
    unchanged: int = 0

class ActionChangeItem(BaseModel):
    action_name: str
    previous: Optional[bool] = None
    new: bool

class ActionBatchMetadata(BaseModel):
    kind: Literal["action_permission_batch"] = "action_permission_batch"
    page_id: int
    changes: List[ActionChangeItem] = Field(default_factory=list)
    unchanged: int = 0

class RoleChangeMetadata(BaseModel):
    kind: Literal["role_change"] = "role_change"
    role_id: int
    action: Literal["created", "updated", "deleted"]

class PageChangeMetadata(BaseModel):
    kind: Literal["page_change"] = "page_change"
    page_id: int
    page_path: str
    action: Literal["created", "updated", "deleted"]

class MenuReorderMetadata(BaseModel):
    kind: Literal["menu_reorder"] = "menu_reorder"
    page_count: int

class SeedRunMetadata(BaseModel):
    kind: Literal["seed_run"] = "seed_run"
    roles: int = 0
    pages: int = 0
    page_permissions: int = 0
    action_permissions: int = 0

AuditMetadata = Annotated[
    Union[
        PermissionBatchMetadata,
        ActionBatchMetadata,
        RoleChangeMetadata,
        PageChangeMetadata,
        MenuReorderMetadata,
        SeedRunMetadata,
    ],
    Field(discriminator="kind"),
]


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    action_type: str
    entity_type: str
    entity_id: Optional[int] = None
    role_name: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by_user_id: Optional[int] = None
    changed_by_role: Optional[str] = None
    description: str
    metadata: Optional[Union[AuditMetadata, Dict[str, Any]]] = None
    created_at: Optional[datetime] = None

class AuditSummary(BaseModel):
    days: int
    total: int
    by_action_type: Dict[str, int]
    distinct_actors: int


# ---- Misc ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[str] = None
