from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Any


def _as_id(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class BlockData(BaseModel):
    id: str
    type: str
    title: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    out_on_true: List[Any] = Field(default_factory=list)   # successor ids, falsy entries allowed
    out_on_false: List[Any] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_id(value)

    @field_validator("out_on_true", "out_on_false", mode="before")
    @classmethod
    def _coerce_exits(cls, value):
        if value is None:
            return []
        return [_as_id(v) if v else v for v in value]


class AnchorRef(BaseModel):
    node_uid: str
    anchor_name: str

    @field_validator("node_uid", mode="before")
    @classmethod
    def _coerce_uid(cls, value):
        return _as_id(value)


class Connection(BaseModel):
    source: AnchorRef
    target: AnchorRef


class Connections(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    in_: List[Connection] = Field(default_factory=list, alias="in")
    out: List[Connection] = Field(default_factory=list)


class ComponentData(BaseModel):
    uid: str
    type: str
    title: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    connections: Connections = Field(default_factory=Connections)

    @field_validator("uid", mode="before")
    @classmethod
    def _coerce_uid(cls, value):
        return _as_id(value)


class ScenarioDocument(BaseModel):
    name: str = "scenario"
    blocks: List[BlockData] = Field(default_factory=list)
    components: List[ComponentData] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)   # name -> initial value
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def block_map(self) -> Dict[str, BlockData]:
        return {b.id: b for b in self.blocks}

    def component_map(self) -> Dict[str, ComponentData]:
        return {c.uid: c for c in self.components}

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
