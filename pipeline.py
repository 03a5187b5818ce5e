"""
Segment pipelines for the three apps (ZenShot, Visual Script, Viral Video).

Each pipeline owns one document state and exposes its stages as methods that can be
triggered one at a time (manual mode) or run in order over every segment (auto-run).
Adding an app means subclassing SegmentPipeline and listing its auto-run stages.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import stages
from config import FAILURE_ABORT, FAILURE_ASK, FAILURE_SKIP, AutoRunPolicy, config
from models import (
    Idea,
    PipelineDocumentState,
    Segment,
    SegmentStatus,
    ViralDocumentState,
    ZenShotDocumentState,
)
from prompt_builders import build_previous_context
from text_chunker import chunk_for_app

# (segment, output of the previous stage, last prompt of the preceding segment) -> stage output
StageFn = Callable[[Segment, Any, Optional[str]], Any]
ConfirmFn = Callable[[Segment, str, BaseException], bool]
ProgressFn = Callable[[int, int, Segment], None]


class PrerequisiteError(ValueError):
    """A stage was triggered before its inputs exist. Raised before any model call."""


@dataclass
class AutoRunReport:
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    aborted: bool = False
    errors: dict[str, str] = field(default_factory=dict)

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise AutoRunAborted(self)


class AutoRunAborted(RuntimeError):
    """Auto-run stopped on a failed stage; report holds what finished before the stop."""

    def __init__(self, report: AutoRunReport):
        super().__init__(
            f"Auto-run aborted after {len(report.completed)} completed segment(s); "
            f"errors: {report.errors}"
        )
        self.report = report


class SegmentPipeline(ABC):
    """Base class for an app pipeline over a list of segments."""

    app = ""

    def __init__(
        self,
        credentials: list[str],
        state: Optional[PipelineDocumentState] = None,
        policy: Optional[AutoRunPolicy] = None,
        provider: Optional[str] = None,
        client_factory: Optional[Callable] = None,
        confirm_continue: Optional[ConfirmFn] = None,
        on_progress: Optional[ProgressFn] = None,
    ):
        self.credentials = list(credentials)
        self.state = state if state is not None else self.new_state()
        self.policy = policy or config.policy_for(self.app)
        self.provider = provider
        self.client_factory = client_factory
        self.confirm_continue = confirm_continue
        self.on_progress = on_progress

    def new_state(self) -> PipelineDocumentState:
        return PipelineDocumentState()

    @abstractmethod
    def auto_stages(self) -> list[tuple[str, StageFn]]:
        """Ordered (name, fn) stages that auto-run executes for every segment."""
        pass

    def check_auto_run(self) -> None:
        """Raise PrerequisiteError when auto-run cannot start."""
        if not self.state.segments:
            raise PrerequisiteError("No segments to process. Load a script first.")

    # --- helpers ---

    def _stage_kwargs(self) -> dict:
        kw: dict[str, Any] = {"provider": self.provider}
        if self.client_factory is not None:
            kw["client_factory"] = self.client_factory
        return kw

    def _segment(self, segment_id: str) -> Segment:
        return self.state.find(segment_id)[1]

    def _call(self, key: str, fn: Callable[[], Any]) -> Any:
        """Run one stage call with its loading flag raised."""
        self.state.loading[key] = True
        try:
            return fn()
        finally:
            self.state.loading[key] = False

    def load_segments(self, text: str) -> list[Segment]:
        """Chunk a document into fresh idle segments with this app's policy."""
        if not text or not text.strip():
            raise PrerequisiteError("Script is empty.")
        self.state.segments = [Segment(text=piece) for piece in chunk_for_app(self.app, text)]
        print(f"[{self.app.upper()}] Loaded {len(self.state.segments)} segment(s)")
        return self.state.segments

    def preceding_prompt(self, segment_id: str) -> Optional[str]:
        """Last prompt of the segment right before segment_id, if it has any."""
        index, _ = self.state.find(segment_id)
        if index == 0:
            return None
        return self.state.segments[index - 1].last_prompt

    # --- auto-run ---

    def _continue_after_failure(self, segment: Segment, stage_name: str, error: BaseException) -> bool:
        """True to skip the segment and keep going, False to stop the run."""
        if self.policy.on_failure == FAILURE_SKIP:
            return True
        if self.policy.on_failure == FAILURE_ABORT:
            return False
        if self.policy.on_failure == FAILURE_ASK and self.confirm_continue is not None:
            return bool(self.confirm_continue(segment, stage_name, error))
        return False

    def _run_stage(
        self,
        stage_name: str,
        fn: StageFn,
        segment: Segment,
        carry: Any,
        previous_prompt: Optional[str],
        first_call: bool,
    ) -> tuple[Any, Optional[BaseException]]:
        """Run one stage with retries. Returns (output, None) or (None, last error)."""
        attempt = 0
        while True:
            if not first_call or attempt:
                self.policy.wait(self.policy.retry_delay if attempt else self.policy.stage_delay)
            try:
                return fn(segment, carry, previous_prompt), None
            except PrerequisiteError as e:
                print(f"[AUTO] {stage_name} cannot run on {segment.id}: {e}")
                return None, e
            except Exception as e:
                attempt += 1
                print(f"[AUTO] {stage_name} failed on {segment.id} (attempt {attempt}): {e}")
                if attempt > self.policy.retries_per_stage:
                    return None, e

    def auto_run(self, segment_ids: Optional[list[str]] = None) -> AutoRunReport:
        """
        Run every auto stage over the segments, strictly one call at a time.

        Each stage receives the previous stage's output directly. A failed stage is
        retried policy.retries_per_stage times after policy.retry_delay; if it still
        fails, the failure policy decides between skipping the segment and stopping.
        policy.stage_delay separates consecutive calls.

        Args:
            segment_ids: Subset to process (kept in document order); all segments when None.

        Returns:
            AutoRunReport with completed and skipped segment ids.
        """
        self.check_auto_run()
        targets = [s for s in self.state.segments if segment_ids is None or s.id in segment_ids]
        stage_list = self.auto_stages()
        report = AutoRunReport()
        previous_prompt: Optional[str] = None
        first_call = True

        for index, segment in enumerate(targets):
            if self.on_progress:
                self.on_progress(index, len(targets), segment)
            print(f"[AUTO] Segment {index + 1}/{len(targets)} ({segment.id})")
            carry: Any = None
            failure: Optional[tuple[str, BaseException]] = None
            for stage_name, fn in stage_list:
                carry, error = self._run_stage(stage_name, fn, segment, carry, previous_prompt, first_call)
                first_call = False
                if error is not None:
                    failure = (stage_name, error)
                    break

            if failure is None:
                report.completed.append(segment.id)
                previous_prompt = segment.last_prompt or previous_prompt
                continue

            stage_name, error = failure
            report.errors[segment.id] = f"{stage_name}: {error}"
            if self._continue_after_failure(segment, stage_name, error):
                print(f"[AUTO] Skipping segment {segment.id}")
                report.skipped.append(segment.id)
                continue
            print(f"[AUTO] Stopped at segment {segment.id}")
            report.aborted = True
            break

        print(
            f"[AUTO] Done: {len(report.completed)} completed, {len(report.skipped)} skipped"
            f"{', aborted' if report.aborted else ''}"
        )
        return report


class ZenShotPipeline(SegmentPipeline):
    """Split each tag into rows, then write one single-line image prompt per row."""

    app = "zenshot"

    def new_state(self) -> ZenShotDocumentState:
        return ZenShotDocumentState()

    def load_script(self, script: str) -> list[Segment]:
        self.state.script = script
        segments = self.load_segments(script)
        for seg in segments:
            seg.image_count = config.zenshot_image_count
        return segments

    def set_image_count(self, segment_id: str, count: int) -> None:
        if count <= 0:
            raise PrerequisiteError("Image count must be positive.")
        self._segment(segment_id).image_count = count

    def extract_characters(self) -> list:
        script = self.state.script or "\n".join(s.text for s in self.state.segments)
        if not script.strip():
            raise PrerequisiteError("Enter a script before extracting characters.")
        characters = self._call(
            "characters",
            lambda: stages.extract_characters(script, self.credentials, **self._stage_kwargs()),
        )
        self.state.characters = characters
        return characters

    def split_rows(self, segment_id: str, count: Optional[int] = None) -> list[str]:
        seg = self._segment(segment_id)
        if not seg.text.strip():
            raise PrerequisiteError(f"Segment {segment_id} has no text.")
        seg.status = SegmentStatus.SPLITTING
        try:
            rows = self._call(
                f"split:{segment_id}",
                lambda: stages.split_into_rows(seg.text, count or seg.image_count, self.credentials, **self._stage_kwargs()),
            )
        except Exception:
            seg.status = SegmentStatus.IDLE
            raise
        seg.rows = rows
        seg.status = SegmentStatus.READY
        return rows

    def generate_prompts(
        self,
        segment_id: str,
        rows: Optional[list[str]] = None,
        previous_context: Optional[str] = None,
    ) -> list[str]:
        """Image prompts for a tag; previous_context defaults to the preceding tag's last prompt."""
        seg = self._segment(segment_id)
        rows = rows if rows is not None else seg.rows
        if not rows:
            raise PrerequisiteError(f"Split segment {segment_id} into rows first.")
        if previous_context is None:
            previous_context = build_previous_context(self.preceding_prompt(segment_id))
        seg.status = SegmentStatus.GENERATING
        try:
            prompts = self._call(
                f"prompts:{segment_id}",
                lambda: stages.generate_zen_prompts(
                    rows,
                    self.state.visual_style,
                    self.state.characters,
                    previous_context or None,
                    self.credentials,
                    **self._stage_kwargs(),
                ),
            )
        finally:
            seg.status = SegmentStatus.READY
        seg.prompts = prompts
        return prompts

    def analyze_action_count(self, segment_id: str) -> int:
        seg = self._segment(segment_id)
        seg.status = SegmentStatus.ANALYZING
        try:
            count = self._call(
                f"actions:{segment_id}",
                lambda: stages.analyze_action_count(seg.text, self.credentials, **self._stage_kwargs()),
            )
        finally:
            seg.status = SegmentStatus.IDLE
        seg.action_count = count
        return count

    def generate_hook_prompts(self, hook: Optional[str] = None) -> list[str]:
        """Video prompts for the hook, inheriting setting and costume from the last tag."""
        hook = hook if hook is not None else self.state.hook
        if not hook or not hook.strip():
            raise PrerequisiteError("Enter a hook first.")
        self.state.hook = hook
        last_prompt = self.state.segments[-1].last_prompt if self.state.segments else None
        context = build_previous_context(last_prompt) or None
        prompts = self._call(
            "hook",
            lambda: stages.generate_hook_video_prompts(
                hook, self.state.visual_style, self.state.characters, context, self.credentials, **self._stage_kwargs()
            ),
        )
        self.state.hook_prompts = prompts
        return prompts

    def auto_stages(self) -> list[tuple[str, StageFn]]:
        return [
            ("split_rows", lambda seg, _carry, _prev: self.split_rows(seg.id)),
            (
                "generate_prompts",
                lambda seg, rows, prev: self.generate_prompts(
                    seg.id, rows=rows, previous_context=build_previous_context(prev or self.preceding_prompt(seg.id))
                ),
            ),
        ]


class VisualScriptPipeline(SegmentPipeline):
    """Analyze scenes, split rows from the analysis, then image (and optionally video) prompts."""

    app = "visual"

    def load_script(self, script: str) -> list[Segment]:
        return self.load_segments(script)

    def analyze_style(self, image: Any) -> str:
        style = self._call(
            "style",
            lambda: stages.analyze_image_style(image, self.credentials, **self._stage_kwargs()),
        )
        self.state.visual_style = style
        return style

    def analyze(self, segment_id: str) -> tuple[str, int]:
        seg = self._segment(segment_id)
        if not seg.text.strip():
            raise PrerequisiteError(f"Segment {segment_id} has no text.")
        seg.status = SegmentStatus.ANALYZING
        try:
            result = self._call(
                f"analyze:{segment_id}",
                lambda: stages.analyze_script_scenes(seg.text, self.credentials, **self._stage_kwargs()),
            )
        except Exception:
            seg.status = SegmentStatus.IDLE
            raise
        seg.analysis = result.breakdown
        seg.scene_count = result.count
        seg.status = SegmentStatus.IDLE
        return result.breakdown, result.count

    def split_rows(self, segment_id: str, analysis: Optional[str] = None, count: Optional[int] = None) -> list[str]:
        seg = self._segment(segment_id)
        analysis = analysis if analysis is not None else seg.analysis
        count = count if count is not None else seg.scene_count
        if not analysis or not count:
            raise PrerequisiteError(f"Analyze segment {segment_id} before splitting rows.")
        seg.status = SegmentStatus.SPLITTING
        try:
            rows = self._call(
                f"split:{segment_id}",
                lambda: stages.split_script_rows(seg.text, analysis, count, self.credentials, **self._stage_kwargs()),
            )
        except Exception:
            seg.status = SegmentStatus.IDLE
            raise
        seg.rows = rows
        seg.status = SegmentStatus.READY
        return rows

    def generate_prompts(self, segment_id: str, rows: Optional[list[str]] = None) -> list[str]:
        seg = self._segment(segment_id)
        rows = rows if rows is not None else seg.rows
        if not rows:
            raise PrerequisiteError(f"Split segment {segment_id} into rows first.")
        seg.status = SegmentStatus.GENERATING
        try:
            prompts = self._call(
                f"prompts:{segment_id}",
                lambda: stages.generate_image_prompts(rows, self.state.visual_style, self.credentials, **self._stage_kwargs()),
            )
        finally:
            seg.status = SegmentStatus.READY
        seg.prompts = prompts
        return prompts

    def generate_video_prompts(self, segment_id: str) -> list[str]:
        seg = self._segment(segment_id)
        if not seg.rows or not seg.analysis:
            raise PrerequisiteError(f"Segment {segment_id} needs an analysis and rows before video prompts.")
        seg.status = SegmentStatus.GENERATING
        try:
            prompts = self._call(
                f"video:{segment_id}",
                lambda: stages.generate_video_prompts(
                    seg.rows, seg.prompts, self.state.visual_style, self.credentials, **self._stage_kwargs()
                ),
            )
        finally:
            seg.status = SegmentStatus.READY
        seg.video_prompts = prompts
        return prompts

    def auto_stages(self) -> list[tuple[str, StageFn]]:
        return [
            ("analyze", lambda seg, _carry, _prev: self.analyze(seg.id)),
            ("split_rows", lambda seg, result, _prev: self.split_rows(seg.id, analysis=result[0], count=result[1])),
            ("generate_prompts", lambda seg, rows, _prev: self.generate_prompts(seg.id, rows=rows)),
        ]


class ViralVideoPipeline(SegmentPipeline):
    """Competitor script -> ideas -> outline -> final script -> tags -> shot actions."""

    app = "viral"

    def new_state(self) -> ViralDocumentState:
        return ViralDocumentState(output_language=config.output_language)

    def _idea(self, idea_id: Optional[int]) -> Idea:
        idea_id = idea_id if idea_id is not None else self.state.selected_idea
        for idea in self.state.ideas:
            if idea.id == idea_id:
                return idea
        raise PrerequisiteError("Select an idea first.")

    def _final_script(self, idea_id: Optional[int] = None) -> str:
        idea = self._idea(idea_id)
        script = self.state.final_scripts.get(idea.id)
        if not script:
            raise PrerequisiteError("Write the final script first.")
        return script

    def analyze(self, script: str):
        if not script or not script.strip():
            raise PrerequisiteError("Enter the competitor script first.")
        self.state.source_script = script
        skeleton = self._call(
            "analysis",
            lambda: stages.analyze_structure(script, self.credentials, **self._stage_kwargs()),
        )
        self.state.skeleton = skeleton
        return skeleton

    def generate_ideas(self) -> list[Idea]:
        if self.state.skeleton is None:
            raise PrerequisiteError("Analyze the competitor script first.")
        ideas = self._call(
            "ideas",
            lambda: stages.generate_ideas(self.state.skeleton.content, self.credentials, **self._stage_kwargs()),
        )
        self.state.ideas = ideas
        return ideas

    def select_idea(self, idea_id: int) -> Idea:
        self.state.selected_idea = idea_id
        return self._idea(idea_id)

    def build_outline(self, idea_id: Optional[int] = None) -> str:
        if self.state.skeleton is None:
            raise PrerequisiteError("Analyze the competitor script first.")
        idea = self._idea(idea_id)
        skeleton = self.state.skeleton
        outline = self._call(
            "outline",
            lambda: stages.build_outline(skeleton.content, idea, skeleton.word_count, self.credentials, **self._stage_kwargs()),
        )
        self.state.outlines[idea.id] = outline
        return outline

    def write_final_script(self, idea_id: Optional[int] = None, target_language: Optional[str] = None) -> str:
        idea = self._idea(idea_id)
        outline = self.state.outlines.get(idea.id)
        if not outline:
            raise PrerequisiteError("Build the outline first.")
        style = self.state.skeleton.style if self.state.skeleton else config.default_competitor_style
        language = target_language or self.state.output_language
        script = self._call(
            "script",
            lambda: stages.write_final_script(outline, style, language, self.credentials, **self._stage_kwargs()),
        )
        self.state.final_scripts[idea.id] = script
        return script

    def recommend_style(self, idea_id: Optional[int] = None) -> Optional[str]:
        script = self._final_script(idea_id)
        style = self._call(
            "style",
            lambda: stages.recommend_style(script, self.credentials, **self._stage_kwargs()),
        )
        if style:
            self.state.selected_style = style
        return style

    def design_characters(self, idea_id: Optional[int] = None) -> list:
        script = self._final_script(idea_id)
        if not self.state.selected_style:
            raise PrerequisiteError("Pick a visual style first.")
        characters = self._call(
            "characters",
            lambda: stages.design_characters(script, self.state.selected_style, self.credentials, **self._stage_kwargs()),
        )
        self.state.characters = characters
        return characters

    def split_tags(self, idea_id: Optional[int] = None) -> list[Segment]:
        return self.load_segments(self._final_script(idea_id))

    def analyze_actions(self, segment_id: str) -> list:
        seg = self._segment(segment_id)
        if not self.state.characters:
            raise PrerequisiteError("Design the characters before analyzing actions.")
        seg.status = SegmentStatus.ANALYZING
        try:
            actions = self._call(
                f"actions:{segment_id}",
                lambda: stages.analyze_actions_for_segment(
                    seg.text,
                    self.state.selected_style,
                    self.state.characters,
                    self.state.output_language,
                    self.credentials,
                    **self._stage_kwargs(),
                ),
            )
        except Exception:
            seg.status = SegmentStatus.IDLE
            raise
        seg.actions = actions
        seg.prompts = [a.image_prompt for a in actions]
        seg.video_prompts = [a.motion_prompt for a in actions]
        seg.status = SegmentStatus.READY
        return actions

    def generate_title(self, idea_id: Optional[int] = None) -> str:
        script = self._final_script(idea_id)
        return self._call("title", lambda: stages.generate_viral_title(script, self.credentials, **self._stage_kwargs()))

    def generate_description(self, title: str, idea_id: Optional[int] = None):
        script = self._final_script(idea_id)
        return self._call(
            "description",
            lambda: stages.generate_description_and_hashtags(script, title, self.credentials, **self._stage_kwargs()),
        )

    def generate_thumbnail_layout(self, title: str, style_analysis: str, idea_id: Optional[int] = None):
        script = self._final_script(idea_id)
        return self._call(
            "thumbnail",
            lambda: stages.generate_thumbnail_layout(script, title, style_analysis, self.credentials, **self._stage_kwargs()),
        )

    def check_auto_run(self) -> None:
        super().check_auto_run()
        if not self.state.characters:
            raise PrerequisiteError("Design the characters before running all tags.")

    def auto_stages(self) -> list[tuple[str, StageFn]]:
        return [("analyze_actions", lambda seg, _carry, _prev: self.analyze_actions(seg.id))]


PIPELINES = {
    "zenshot": ZenShotPipeline,
    "visual": VisualScriptPipeline,
    "viral": ViralVideoPipeline,
}
