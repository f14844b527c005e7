"""
Replay of a scene's command list into a staged snapshot.

``compute_stage_state`` folds every command before the target index into the
persistent stage (background, characters, overlays, screen effects and the
variable environment), then looks at the target command alone to describe
what the preview should highlight.  The whole fold is rerun on every call, so
jumping to an arbitrary index never depends on earlier calls.

Both handler tables are keyed by command class and must cover every command
kind; the module refuses to import otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from stagevn.commands.conditions import conditions_met, display_text
from stagevn.commands.models import (
    COMMAND_TYPES,
    BranchEndCommand,
    BranchStartCommand,
    ChoiceCommand,
    ChoiceOption,
    CommandBase,
    DialogueCommand,
    FlashScreenCommand,
    GroupCommand,
    HideButtonCommand,
    HideCharacterCommand,
    HideImageCommand,
    HideTextCommand,
    JumpCommand,
    JumpToLabelCommand,
    LabelCommand,
    PanZoomScreenCommand,
    PlayMovieCommand,
    PlayMusicCommand,
    PlaySoundEffectCommand,
    Position,
    ResetScreenEffectsCommand,
    Scene,
    SetBackgroundCommand,
    SetVariableCommand,
    ShakeScreenCommand,
    ShowButtonCommand,
    ShowCharacterCommand,
    ShowImageCommand,
    ShowScreenCommand,
    ShowTextCommand,
    StopMusicCommand,
    StopSoundEffectCommand,
    TextInputCommand,
    TintScreenCommand,
    WaitCommand,
)
from stagevn.config.feature_flags import is_enabled
from stagevn.logging_config import scene_context
from stagevn.runtime.assets import AssetResolver, NullAssetResolver
from stagevn.runtime.variables import (
    VariableTable,
    apply_set_variable,
    index_variables,
    seed_environment,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ButtonOverlay",
    "ChoiceFocus",
    "CommandIndicator",
    "DialogueFocus",
    "FlashFocus",
    "Focus",
    "ImageOverlay",
    "MovieFocus",
    "ScreenEffects",
    "ShakeState",
    "StageCharacter",
    "StageSnapshot",
    "TextOverlay",
    "compute_stage_state",
]

_SNAPSHOT = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Snapshot models
# ---------------------------------------------------------------------------
class StageCharacter(BaseModel):
    character_id: str
    expression_id: str = ""
    position: Position = "center"
    image_layers: List[str] = Field(default_factory=list)
    transition: Optional[str] = None

    model_config = _SNAPSHOT


class TextOverlay(BaseModel):
    id: str
    text: str
    x: float
    y: float
    font_size: float
    font_family: str
    color: str
    width: Optional[float] = None
    height: Optional[float] = None
    text_align: Optional[str] = None
    vertical_align: Optional[str] = None

    model_config = _SNAPSHOT


class ImageOverlay(BaseModel):
    id: str
    image_id: str
    image_url: Optional[str] = None
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    opacity: float = 1.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    model_config = _SNAPSHOT


class ButtonOverlay(BaseModel):
    id: str
    text: str
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None
    background_color: str
    text_color: str
    font_size: float
    font_weight: str = "normal"
    border_radius: float = 8.0
    image_url: Optional[str] = None
    hover_image_url: Optional[str] = None

    model_config = _SNAPSHOT


class ShakeState(BaseModel):
    active: bool = False
    intensity: float = 0.0
    duration: float = 0.0

    model_config = _SNAPSHOT


class ScreenEffects(BaseModel):
    tint: str = "transparent"
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    shake: ShakeState = Field(default_factory=ShakeState)

    model_config = _SNAPSHOT


class DialogueFocus(BaseModel):
    type: Literal["dialogue"] = "dialogue"
    character_id: Optional[str] = None
    speaker: str = "Narrator"
    color: str = "#FFFFFF"
    text: str = ""

    model_config = _SNAPSHOT


class ChoiceFocus(BaseModel):
    type: Literal["choice"] = "choice"
    options: List[ChoiceOption] = Field(default_factory=list)

    model_config = _SNAPSHOT


class MovieFocus(BaseModel):
    type: Literal["movie"] = "movie"
    video_id: str
    video_name: str = "N/A"
    video_url: Optional[str] = None

    model_config = _SNAPSHOT


class FlashFocus(BaseModel):
    type: Literal["flash"] = "flash"
    color: str
    duration: float = 0.0

    model_config = _SNAPSHOT


class CommandIndicator(BaseModel):
    type: Literal["indicator"] = "indicator"
    kind: str
    details: str = ""

    model_config = _SNAPSHOT


Focus = Annotated[
    Union[DialogueFocus, ChoiceFocus, MovieFocus, FlashFocus, CommandIndicator],
    Field(discriminator="type"),
]


class StageSnapshot(BaseModel):
    scene_id: str
    target_index: Optional[int] = None
    background_id: Optional[str] = None
    background_url: Optional[str] = None
    characters: Dict[str, StageCharacter] = Field(default_factory=dict)
    text_overlays: Dict[str, TextOverlay] = Field(default_factory=dict)
    image_overlays: Dict[str, ImageOverlay] = Field(default_factory=dict)
    button_overlays: Dict[str, ButtonOverlay] = Field(default_factory=dict)
    screen: ScreenEffects = Field(default_factory=ScreenEffects)
    focus: Optional[Focus] = None
    variables: Dict[str, Any] = Field(default_factory=dict)

    model_config = _SNAPSHOT


# ---------------------------------------------------------------------------
# Fold state
# ---------------------------------------------------------------------------
@dataclass
class _Stage:
    assets: AssetResolver
    variables: Dict[str, Any]
    env: Dict[str, Any]
    background_id: Optional[str] = None
    background_url: Optional[str] = None
    characters: Dict[str, StageCharacter] = field(default_factory=dict)
    text_overlays: Dict[str, TextOverlay] = field(default_factory=dict)
    image_overlays: Dict[str, ImageOverlay] = field(default_factory=dict)
    button_overlays: Dict[str, ButtonOverlay] = field(default_factory=dict)
    screen: ScreenEffects = field(default_factory=ScreenEffects)


FoldHandler = Callable[[_Stage, Any], None]
FocusHandler = Callable[[_Stage, Any], Optional[BaseModel]]

_FOLD: Dict[type, FoldHandler] = {}
_FOCUS: Dict[type, FocusHandler] = {}


def _folds(*kinds: type) -> Callable[[FoldHandler], FoldHandler]:
    def _register(fn: FoldHandler) -> FoldHandler:
        for kind in kinds:
            _FOLD[kind] = fn
        return fn

    return _register


def _focuses(*kinds: type) -> Callable[[FocusHandler], FocusHandler]:
    def _register(fn: FocusHandler) -> FocusHandler:
        for kind in kinds:
            _FOCUS[kind] = fn
        return fn

    return _register


# ---------------------------------------------------------------------------
# Persistent effects
# ---------------------------------------------------------------------------
@_folds(SetBackgroundCommand)
def _set_background(stage: _Stage, command: SetBackgroundCommand) -> None:
    stage.background_id = command.background_id
    stage.background_url = stage.assets.background_url(command.background_id)


@_folds(ShowCharacterCommand)
def _show_character(stage: _Stage, command: ShowCharacterCommand) -> None:
    definition = stage.assets.character(command.character_id)
    if definition is None:
        LOGGER.debug("Character '%s' not in asset catalog", command.character_id)
        layers: List[str] = []
    else:
        layers = definition.image_layers(command.expression_id)
    stage.characters[command.character_id] = StageCharacter(
        character_id=command.character_id,
        expression_id=command.expression_id,
        position=command.position,
        image_layers=layers,
        transition=command.transition,
    )


@_folds(HideCharacterCommand)
def _hide_character(stage: _Stage, command: HideCharacterCommand) -> None:
    stage.characters.pop(command.character_id, None)


@_folds(SetVariableCommand)
def _set_variable(stage: _Stage, command: SetVariableCommand) -> None:
    apply_set_variable(
        stage.env, stage.variables, command.variable_id, command.operator, command.value
    )


@_folds(TintScreenCommand)
def _tint(stage: _Stage, command: TintScreenCommand) -> None:
    stage.screen = stage.screen.model_copy(update={"tint": command.color})


@_folds(PanZoomScreenCommand)
def _pan_zoom(stage: _Stage, command: PanZoomScreenCommand) -> None:
    stage.screen = stage.screen.model_copy(
        update={"zoom": command.zoom, "pan_x": command.pan_x, "pan_y": command.pan_y}
    )


@_folds(ResetScreenEffectsCommand)
def _reset_screen(stage: _Stage, command: ResetScreenEffectsCommand) -> None:
    stage.screen = ScreenEffects(shake=stage.screen.shake)


@_folds(ShowTextCommand)
def _show_text(stage: _Stage, command: ShowTextCommand) -> None:
    stage.text_overlays[command.id] = TextOverlay(
        id=command.id,
        text=command.text,
        x=command.x,
        y=command.y,
        font_size=command.font_size,
        font_family=command.font_family,
        color=command.color,
        width=command.width,
        height=command.height,
        text_align=command.text_align,
        vertical_align=command.vertical_align,
    )


@_folds(ShowImageCommand)
def _show_image(stage: _Stage, command: ShowImageCommand) -> None:
    url = stage.assets.image_url(command.image_id)
    if url is None:
        LOGGER.debug("Image '%s' unresolved; overlay kept without url", command.image_id)
    stage.image_overlays[command.id] = ImageOverlay(
        id=command.id,
        image_id=command.image_id,
        image_url=url,
        x=command.x,
        y=command.y,
        width=command.width,
        height=command.height,
        rotation=command.rotation,
        opacity=command.opacity,
        scale_x=1.0 if command.scale_x is None else command.scale_x,
        scale_y=1.0 if command.scale_y is None else command.scale_y,
    )


def _media_url(stage: _Stage, media: Any) -> Optional[str]:
    if media is None:
        return None
    if media.type == "video":
        return stage.assets.video_url(media.id)
    return stage.assets.image_url(media.id)


@_folds(ShowButtonCommand)
def _show_button(stage: _Stage, command: ShowButtonCommand) -> None:
    if not conditions_met(command.show_conditions, stage.env):
        return
    stage.button_overlays[command.id] = ButtonOverlay(
        id=command.id,
        text=command.text,
        x=command.x,
        y=command.y,
        width=command.width,
        height=command.height,
        background_color=command.background_color,
        text_color=command.text_color,
        font_size=command.font_size,
        font_weight=command.font_weight,
        border_radius=command.border_radius,
        image_url=_media_url(stage, command.image),
        hover_image_url=_media_url(stage, command.hover_image),
    )


@_folds(HideTextCommand)
def _hide_text(stage: _Stage, command: HideTextCommand) -> None:
    stage.text_overlays.pop(command.target_command_id, None)


@_folds(HideImageCommand)
def _hide_image(stage: _Stage, command: HideImageCommand) -> None:
    stage.image_overlays.pop(command.target_command_id, None)


@_folds(HideButtonCommand)
def _hide_button(stage: _Stage, command: HideButtonCommand) -> None:
    stage.button_overlays.pop(command.target_command_id, None)


@_folds(
    DialogueCommand,
    ChoiceCommand,
    BranchStartCommand,
    BranchEndCommand,
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
    FlashScreenCommand,
    ShowScreenCommand,
    GroupCommand,
)
def _no_persistent_effect(stage: _Stage, command: CommandBase) -> None:
    return None


# ---------------------------------------------------------------------------
# Focus of the target command
# ---------------------------------------------------------------------------
@_focuses(DialogueCommand)
def _dialogue_focus(stage: _Stage, command: DialogueCommand) -> DialogueFocus:
    if not command.character_id:
        return DialogueFocus(text=command.text)
    definition = stage.assets.character(command.character_id)
    if definition is None:
        return DialogueFocus(
            character_id=command.character_id, speaker=command.character_id, text=command.text
        )
    return DialogueFocus(
        character_id=command.character_id,
        speaker=definition.name or command.character_id,
        color=definition.color,
        text=command.text,
    )


@_focuses(ChoiceCommand)
def _choice_focus(stage: _Stage, command: ChoiceCommand) -> ChoiceFocus:
    return ChoiceFocus(
        options=[option for option in command.options if conditions_met(option.conditions, stage.env)]
    )


@_focuses(PlayMovieCommand)
def _movie_focus(stage: _Stage, command: PlayMovieCommand) -> MovieFocus:
    return MovieFocus(
        video_id=command.video_id,
        video_name=stage.assets.video_name(command.video_id) or "N/A",
        video_url=stage.assets.video_url(command.video_id),
    )


@_focuses(FlashScreenCommand)
def _flash_focus(stage: _Stage, command: FlashScreenCommand) -> FlashFocus:
    return FlashFocus(color=command.color, duration=command.duration)


def _indicator(kind: str, details: str = "") -> Optional[CommandIndicator]:
    if not is_enabled("enable_focus_indicators"):
        return None
    return CommandIndicator(kind=kind, details=details)


@_focuses(ShakeScreenCommand)
def _shake_focus(stage: _Stage, command: ShakeScreenCommand) -> Optional[CommandIndicator]:
    stage.screen = stage.screen.model_copy(
        update={
            "shake": ShakeState(
                active=True, intensity=command.intensity, duration=command.duration
            )
        }
    )
    return _indicator(command.type, f"intensity {display_text(command.intensity)}")


@_focuses(SetVariableCommand)
def _set_variable_focus(stage: _Stage, command: SetVariableCommand) -> Optional[CommandIndicator]:
    return _indicator(
        command.type, f"{command.variable_id} {command.operator} {display_text(command.value)}"
    )


@_focuses(PlayMusicCommand, PlaySoundEffectCommand)
def _audio_focus(stage: _Stage, command: Any) -> Optional[CommandIndicator]:
    return _indicator(command.type, command.audio_id)


@_focuses(JumpCommand)
def _jump_focus(stage: _Stage, command: JumpCommand) -> Optional[CommandIndicator]:
    return _indicator(command.type, command.target_scene_id)


@_focuses(JumpToLabelCommand)
def _jump_label_focus(stage: _Stage, command: JumpToLabelCommand) -> Optional[CommandIndicator]:
    return _indicator(command.type, command.label_id)


@_focuses(WaitCommand)
def _wait_focus(stage: _Stage, command: WaitCommand) -> Optional[CommandIndicator]:
    details = "until input" if command.wait_for_input else f"{display_text(command.duration)}s"
    return _indicator(command.type, details)


@_focuses(TextInputCommand)
def _text_input_focus(stage: _Stage, command: TextInputCommand) -> Optional[CommandIndicator]:
    return _indicator(command.type, command.prompt or command.variable_id)


@_focuses(ShowScreenCommand)
def _screen_focus(stage: _Stage, command: ShowScreenCommand) -> Optional[CommandIndicator]:
    return _indicator(command.type, command.screen_id)


@_focuses(StopMusicCommand, StopSoundEffectCommand)
def _stop_focus(stage: _Stage, command: CommandBase) -> Optional[CommandIndicator]:
    return _indicator(command.type)


@_focuses(
    SetBackgroundCommand,
    ShowCharacterCommand,
    HideCharacterCommand,
    TintScreenCommand,
    PanZoomScreenCommand,
    ResetScreenEffectsCommand,
    ShowTextCommand,
    ShowImageCommand,
    HideTextCommand,
    HideImageCommand,
    ShowButtonCommand,
    HideButtonCommand,
    BranchStartCommand,
    BranchEndCommand,
    LabelCommand,
    GroupCommand,
)
def _no_focus(stage: _Stage, command: CommandBase) -> None:
    return None


def _check_exhaustive() -> None:
    for table, label in ((_FOLD, "fold"), (_FOCUS, "focus")):
        missing = sorted(kind.__name__ for kind in COMMAND_TYPES if kind not in table)
        if missing:
            raise RuntimeError(f"stage {label} table missing handlers for: {', '.join(missing)}")


_check_exhaustive()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def compute_stage_state(
    scene: Scene,
    variables: VariableTable | None = None,
    target_index: Optional[int] = None,
    *,
    assets: AssetResolver | None = None,
) -> StageSnapshot:
    """Replay ``scene`` up to ``target_index`` and describe the staged result.

    ``target_index=None`` folds the whole scene and produces no focus.  An
    index past the end behaves the same; a negative index folds nothing.
    """
    table = index_variables(variables)
    stage = _Stage(
        assets=assets or NullAssetResolver(),
        variables=table,
        env=seed_environment(table),
    )
    commands = scene.commands
    if target_index is None:
        end = len(commands)
    else:
        end = max(0, min(target_index, len(commands)))

    with scene_context(scene.id):
        for command in commands[:end]:
            if not conditions_met(command.conditions, stage.env):
                continue
            _FOLD[type(command)](stage, command)

        focus = None
        if target_index is not None and 0 <= target_index < len(commands):
            target = commands[target_index]
            if conditions_met(target.conditions, stage.env):
                focus = _FOCUS[type(target)](stage, target)
            else:
                LOGGER.debug("Target %d skipped: conditions not met", target_index)

    return StageSnapshot(
        scene_id=scene.id,
        target_index=target_index,
        background_id=stage.background_id,
        background_url=stage.background_url,
        characters=stage.characters,
        text_overlays=stage.text_overlays,
        image_overlays=stage.image_overlays,
        button_overlays=stage.button_overlays,
        screen=stage.screen,
        focus=focus,
        variables=dict(stage.env),
    )
