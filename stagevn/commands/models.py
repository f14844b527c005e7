from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from stagevn.commands.conditions import compare
from stagevn.commands.ids import new_command_id, new_scene_id

ConditionOperator = Literal[
    "is_true",
    "is_false",
    "==",
    "!=",
    ">",
    "<",
    ">=",
    "<=",
    "contains",
    "starts_with",
]
VariableType = Literal["string", "number", "boolean"]
SetVariableOperator = Literal["set", "add", "subtract"]
PositionPreset = Literal["left", "center", "right", "off-left", "off-right"]
Transition = Literal[
    "fade", "dissolve", "slide", "iris-in", "wipe-right", "instant", "cross-fade"
]
TextAlign = Literal["left", "center", "right"]
VerticalAlign = Literal["top", "middle", "bottom"]

CommandKind = Literal[
    "dialogue",
    "set_background",
    "show_character",
    "hide_character",
    "choice",
    "branch_start",
    "branch_end",
    "set_variable",
    "text_input",
    "jump",
    "label",
    "jump_to_label",
    "play_music",
    "stop_music",
    "play_sound_effect",
    "stop_sound_effect",
    "play_movie",
    "wait",
    "shake_screen",
    "tint_screen",
    "pan_zoom_screen",
    "reset_screen_effects",
    "flash_screen",
    "show_screen",
    "show_text",
    "show_image",
    "hide_text",
    "hide_image",
    "show_button",
    "hide_button",
    "group",
]

BLOCKING_KINDS: frozenset[str] = frozenset(
    {
        "dialogue",
        "choice",
        "text_input",
        "branch_start",
        "branch_end",
        "jump",
        "jump_to_label",
        "show_screen",
    }
)
UNPREDICTABLE_ASYNC_KINDS: frozenset[str] = frozenset({"play_movie", "wait"})

_FROZEN = ConfigDict(extra="forbid", frozen=True)


class Condition(BaseModel):
    variable_id: str = Field(..., min_length=1)
    operator: ConditionOperator = "=="
    value: Optional[Union[bool, int, float, str]] = None

    model_config = _FROZEN

    def evaluate(self, env: Dict[str, Any]) -> bool:
        if env.get(self.variable_id) is None:
            return False
        return compare(env[self.variable_id], self.operator, self.value)


class Variable(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    type: VariableType = "string"
    default: Union[bool, int, float, str] = ""

    model_config = _FROZEN


class PositionCustom(BaseModel):
    x: float = 50.0
    y: float = 0.0

    model_config = _FROZEN


Position = Union[PositionPreset, PositionCustom]


class CommandModifiers(BaseModel):
    run_async: bool = False
    stack_id: Optional[str] = None
    stack_order: Optional[int] = None

    model_config = _FROZEN


# ---------------------------------------------------------------------------
# UI actions attached to choice options and buttons
# ---------------------------------------------------------------------------
class NoAction(BaseModel):
    type: Literal["none"] = "none"
    model_config = _FROZEN


class JumpToSceneAction(BaseModel):
    type: Literal["jump_to_scene"] = "jump_to_scene"
    target_scene_id: str
    model_config = _FROZEN


class JumpToLabelAction(BaseModel):
    type: Literal["jump_to_label"] = "jump_to_label"
    target_label: str
    model_config = _FROZEN


class SetVariableAction(BaseModel):
    type: Literal["set_variable"] = "set_variable"
    variable_id: str
    operator: SetVariableOperator = "set"
    value: Union[bool, int, float, str] = ""
    model_config = _FROZEN


class GoToScreenAction(BaseModel):
    type: Literal["go_to_screen"] = "go_to_screen"
    target_screen_id: str
    model_config = _FROZEN


class ToggleScreenAction(BaseModel):
    type: Literal["toggle_screen"] = "toggle_screen"
    target_screen_id: str
    model_config = _FROZEN


UIAction = Annotated[
    Union[
        NoAction,
        JumpToSceneAction,
        JumpToLabelAction,
        SetVariableAction,
        GoToScreenAction,
        ToggleScreenAction,
    ],
    Field(discriminator="type"),
]


class ChoiceOption(BaseModel):
    id: str = Field(default_factory=new_command_id)
    text: str = ""
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[UIAction] = Field(default_factory=list)

    model_config = _FROZEN


class ButtonMedia(BaseModel):
    type: Literal["image", "video"] = "image"
    id: str

    model_config = _FROZEN


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
class CommandBase(BaseModel):
    id: str = Field(default_factory=new_command_id, min_length=1)
    type: CommandKind
    conditions: List[Condition] = Field(default_factory=list)
    modifiers: Optional[CommandModifiers] = None

    model_config = _FROZEN

    @property
    def is_blocking(self) -> bool:
        return self.type in BLOCKING_KINDS

    @property
    def stack_id(self) -> Optional[str]:
        return self.modifiers.stack_id if self.modifiers else None


class DialogueCommand(CommandBase):
    type: Literal["dialogue"] = "dialogue"
    character_id: Optional[str] = None
    text: str = ""


class SetBackgroundCommand(CommandBase):
    type: Literal["set_background"] = "set_background"
    background_id: str
    transition: Transition = "fade"
    duration: float = 1.0


class ShowCharacterCommand(CommandBase):
    type: Literal["show_character"] = "show_character"
    character_id: str
    expression_id: str = ""
    position: Position = "center"
    transition: Transition = "fade"
    duration: float = 0.5
    start_position: Optional[Position] = None
    end_position: Optional[Position] = None


class HideCharacterCommand(CommandBase):
    type: Literal["hide_character"] = "hide_character"
    character_id: str
    transition: Transition = "fade"
    duration: float = 0.5


class ChoiceCommand(CommandBase):
    type: Literal["choice"] = "choice"
    options: List[ChoiceOption] = Field(default_factory=list)


class BranchStartCommand(CommandBase):
    type: Literal["branch_start"] = "branch_start"
    branch_id: str = Field(..., min_length=1)
    name: str = "Branch"
    color: str = "#6b7280"
    is_collapsed: bool = False


class BranchEndCommand(CommandBase):
    type: Literal["branch_end"] = "branch_end"
    branch_id: str = Field(..., min_length=1)


class SetVariableCommand(CommandBase):
    type: Literal["set_variable"] = "set_variable"
    variable_id: str
    operator: SetVariableOperator = "set"
    value: Union[bool, int, float, str] = ""


class TextInputCommand(CommandBase):
    type: Literal["text_input"] = "text_input"
    variable_id: str
    prompt: str = ""
    placeholder: Optional[str] = None
    max_length: Optional[int] = Field(default=None, ge=1)


class JumpCommand(CommandBase):
    type: Literal["jump"] = "jump"
    target_scene_id: str


class LabelCommand(CommandBase):
    type: Literal["label"] = "label"
    label_id: str


class JumpToLabelCommand(CommandBase):
    type: Literal["jump_to_label"] = "jump_to_label"
    label_id: str


class PlayMusicCommand(CommandBase):
    type: Literal["play_music"] = "play_music"
    audio_id: str
    loop: bool = True
    fade_duration: float = 1.0
    volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class StopMusicCommand(CommandBase):
    type: Literal["stop_music"] = "stop_music"
    fade_duration: float = 1.0


class PlaySoundEffectCommand(CommandBase):
    type: Literal["play_sound_effect"] = "play_sound_effect"
    audio_id: str
    volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class StopSoundEffectCommand(CommandBase):
    type: Literal["stop_sound_effect"] = "stop_sound_effect"


class PlayMovieCommand(CommandBase):
    type: Literal["play_movie"] = "play_movie"
    video_id: str
    waits_for_completion: bool = True


class WaitCommand(CommandBase):
    type: Literal["wait"] = "wait"
    duration: float = 1.0
    wait_for_input: bool = False


class ShakeScreenCommand(CommandBase):
    type: Literal["shake_screen"] = "shake_screen"
    duration: float = 0.5
    intensity: float = 0.5


class TintScreenCommand(CommandBase):
    type: Literal["tint_screen"] = "tint_screen"
    color: str = "transparent"
    duration: float = 1.0


class PanZoomScreenCommand(CommandBase):
    type: Literal["pan_zoom_screen"] = "pan_zoom_screen"
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    duration: float = 1.0


class ResetScreenEffectsCommand(CommandBase):
    type: Literal["reset_screen_effects"] = "reset_screen_effects"
    duration: float = 0.5


class FlashScreenCommand(CommandBase):
    type: Literal["flash_screen"] = "flash_screen"
    color: str = "#ffffff"
    duration: float = 0.3


class ShowScreenCommand(CommandBase):
    type: Literal["show_screen"] = "show_screen"
    screen_id: str


class ShowTextCommand(CommandBase):
    type: Literal["show_text"] = "show_text"
    text: str = ""
    x: float = 50.0
    y: float = 50.0
    font_size: float = 24.0
    font_family: str = "sans-serif"
    color: str = "#ffffff"
    width: Optional[float] = None
    height: Optional[float] = None
    text_align: Optional[TextAlign] = None
    vertical_align: Optional[VerticalAlign] = None
    transition: Transition = "fade"
    duration: float = 0.5


class ShowImageCommand(CommandBase):
    type: Literal["show_image"] = "show_image"
    image_id: str
    x: float = 50.0
    y: float = 50.0
    width: float = 20.0
    height: float = 20.0
    rotation: float = 0.0
    opacity: float = 1.0
    scale_x: Optional[float] = None
    scale_y: Optional[float] = None
    transition: Transition = "fade"
    duration: float = 0.5


class HideTextCommand(CommandBase):
    type: Literal["hide_text"] = "hide_text"
    target_command_id: str
    transition: Transition = "fade"
    duration: float = 0.5


class HideImageCommand(CommandBase):
    type: Literal["hide_image"] = "hide_image"
    target_command_id: str
    transition: Transition = "fade"
    duration: float = 0.5


class ShowButtonCommand(CommandBase):
    type: Literal["show_button"] = "show_button"
    text: str = "Button"
    x: float = 50.0
    y: float = 50.0
    width: Optional[float] = None
    height: Optional[float] = None
    anchor_x: float = 0.5
    anchor_y: float = 0.5
    background_color: str = "#4f46e5"
    text_color: str = "#ffffff"
    font_size: float = 18.0
    font_weight: Literal["normal", "bold"] = "normal"
    border_radius: float = 8.0
    image: Optional[ButtonMedia] = None
    hover_image: Optional[ButtonMedia] = None
    on_click: UIAction = Field(default_factory=NoAction)
    actions: List[UIAction] = Field(default_factory=list)
    click_sound: Optional[str] = None
    wait_for_click: bool = False
    transition: Optional[Transition] = None
    duration: Optional[float] = None
    show_conditions: List[Condition] = Field(default_factory=list)


class HideButtonCommand(CommandBase):
    type: Literal["hide_button"] = "hide_button"
    target_command_id: str
    transition: Optional[Transition] = None
    duration: Optional[float] = None


class GroupCommand(CommandBase):
    type: Literal["group"] = "group"
    name: str = "Group"
    command_ids: List[str] = Field(default_factory=list)
    collapsed: bool = False


Command = Annotated[
    Union[
        DialogueCommand,
        SetBackgroundCommand,
        ShowCharacterCommand,
        HideCharacterCommand,
        ChoiceCommand,
        BranchStartCommand,
        BranchEndCommand,
        SetVariableCommand,
        TextInputCommand,
        JumpCommand,
        LabelCommand,
        JumpToLabelCommand,
        PlayMusicCommand,
        StopMusicCommand,
        PlaySoundEffectCommand,
        StopSoundEffectCommand,
        PlayMovieCommand,
        WaitCommand,
        ShakeScreenCommand,
        TintScreenCommand,
        PanZoomScreenCommand,
        ResetScreenEffectsCommand,
        FlashScreenCommand,
        ShowScreenCommand,
        ShowTextCommand,
        ShowImageCommand,
        HideTextCommand,
        HideImageCommand,
        ShowButtonCommand,
        HideButtonCommand,
        GroupCommand,
    ],
    Field(discriminator="type"),
]

COMMAND_TYPES: tuple[type[CommandBase], ...] = get_args(get_args(Command)[0])
COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)
COMMAND_LIST_ADAPTER: TypeAdapter[List[Command]] = TypeAdapter(List[Command])


def parse_command(data: Any) -> CommandBase:
    """Validate a single command from a dict (or return a model unchanged)."""
    if isinstance(data, CommandBase):
        return data
    return COMMAND_ADAPTER.validate_python(data)


class Scene(BaseModel):
    id: str = Field(default_factory=new_scene_id, min_length=1)
    name: str = "Untitled Scene"
    commands: List[Command] = Field(default_factory=list)
    conditions: List[Condition] = Field(default_factory=list)
    fallback_scene_id: Optional[str] = None

    model_config = _FROZEN

    @model_validator(mode="after")
    def _unique_command_ids(self) -> "Scene":
        seen: set[str] = set()
        for command in self.commands:
            if command.id in seen:
                raise ValueError(f"duplicate command id: {command.id}")
            seen.add(command.id)
        return self

    def index_of(self, command_id: str) -> Optional[int]:
        for index, command in enumerate(self.commands):
            if command.id == command_id:
                return index
        return None


class Project(BaseModel):
    scenes: Dict[str, Scene] = Field(default_factory=dict)
    start_scene_id: str = ""
    variables: Dict[str, Variable] = Field(default_factory=dict)

    model_config = _FROZEN

    @model_validator(mode="after")
    def _check_start(self) -> "Project":
        if self.start_scene_id and self.start_scene_id not in self.scenes:
            raise ValueError(
                f"start_scene_id references unknown scene '{self.start_scene_id}'"
            )
        return self


__all__ = [
    "BLOCKING_KINDS",
    "COMMAND_ADAPTER",
    "COMMAND_LIST_ADAPTER",
    "COMMAND_TYPES",
    "UNPREDICTABLE_ASYNC_KINDS",
    "BranchEndCommand",
    "BranchStartCommand",
    "ButtonMedia",
    "ChoiceCommand",
    "ChoiceOption",
    "Command",
    "CommandBase",
    "CommandKind",
    "CommandModifiers",
    "Condition",
    "DialogueCommand",
    "FlashScreenCommand",
    "GoToScreenAction",
    "GroupCommand",
    "HideButtonCommand",
    "HideCharacterCommand",
    "HideImageCommand",
    "HideTextCommand",
    "JumpCommand",
    "JumpToLabelAction",
    "JumpToLabelCommand",
    "JumpToSceneAction",
    "LabelCommand",
    "NoAction",
    "PanZoomScreenCommand",
    "PlayMovieCommand",
    "PlayMusicCommand",
    "PlaySoundEffectCommand",
    "Position",
    "PositionCustom",
    "Project",
    "ResetScreenEffectsCommand",
    "Scene",
    "SetBackgroundCommand",
    "SetVariableAction",
    "SetVariableCommand",
    "ShakeScreenCommand",
    "ShowButtonCommand",
    "ShowCharacterCommand",
    "ShowImageCommand",
    "ShowScreenCommand",
    "ShowTextCommand",
    "StopMusicCommand",
    "StopSoundEffectCommand",
    "TextInputCommand",
    "TintScreenCommand",
    "ToggleScreenAction",
    "UIAction",
    "Variable",
    "WaitCommand",
    "parse_command",
]
