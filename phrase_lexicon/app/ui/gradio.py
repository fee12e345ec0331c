"""User interface assembly for the Gradio front-end."""

from __future__ import annotations

import concurrent.futures
import json
import time
from typing import Iterator, Tuple

import gradio as gr

from ..services.lookup_service import LookupService

_INTERFACE_CSS = """
.pl-container {max-width: 960px; margin: 0 auto; gap: 24px;}
.pl-hero {text-align: center; padding-bottom: 12px;}
.pl-panel {border: 1px solid rgba(15, 23, 42, 0.08); border-radius: 16px; background: #ffffff; padding: 24px;}
.pl-status {background: #f1f5f9; border-radius: 12px; padding: 12px 16px; font-weight: 600;}
.pl-log {background: #ffffff; border-radius: 12px; padding: 12px 16px; max-height: 220px; overflow-y: auto;}
"""

_DEFAULT_RESULTS = "Start by entering a phrase and click **Look up**."

UiUpdate = Tuple[str, str, str, str]


def create_interface(service: LookupService) -> gr.Blocks:
    """Construct the Gradio Blocks UI around ``service``."""

    def lookup_interface(phrase: str) -> Iterator[UiUpdate]:
        """Run a lookup in a worker thread, streaming progress to the UI."""

        if not phrase or not phrase.strip():
            yield ("Please enter a phrase.", "", _DEFAULT_RESULTS, "{}")
            return

        yield ("Starting lookup...", "", _DEFAULT_RESULTS, "{}")
        start_time = time.perf_counter()

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(service.lookup_with_trace, phrase)
            while True:
                try:
                    response, trace = future.result(timeout=0.25)
                    break
                except concurrent.futures.TimeoutError:
                    elapsed = time.perf_counter() - start_time
                    yield (f"Looking up... {elapsed:.1f}s elapsed", "", _DEFAULT_RESULTS, "{}")

        elapsed = time.perf_counter() - start_time
        summary = service.formatter.summarize(response)
        status = (
            f"Lookup finished in {elapsed:.2f}s: {summary['results']} result(s), "
            f"error code {summary['error_code']}"
        )
        yield (
            status,
            service.formatter.format_trace(trace),
            service.format_response(phrase, response),
            json.dumps(response.to_dict(), indent=2, ensure_ascii=False),
        )

    with gr.Blocks(title="Phrase Lexicon", css=_INTERFACE_CSS) as interface:
        with gr.Column(elem_classes=["pl-container"]):
            gr.Markdown(
                "<h2>📖 Phrase Lexicon</h2>\n"
                "<p>Look up a phrase. Stored entries are reused; new ones are generated and saved.</p>",
                elem_classes=["pl-hero"],
            )
            with gr.Row():
                phrase_input = gr.Textbox(
                    label="Phrase",
                    placeholder="e.g. light year",
                    scale=4,
                )
                lookup_button = gr.Button("Look up", variant="primary", scale=1)
            status_output = gr.Markdown(elem_classes=["pl-status"])
            with gr.Column(elem_classes=["pl-panel"]):
                results_output = gr.Markdown(_DEFAULT_RESULTS)
            with gr.Accordion("Lookup activity", open=False):
                log_output = gr.Markdown(elem_classes=["pl-log"])
            with gr.Accordion("Raw response", open=False):
                raw_output = gr.Code(language="json", value="{}")

        outputs = [status_output, log_output, results_output, raw_output]
        lookup_button.click(lookup_interface, inputs=phrase_input, outputs=outputs)
        phrase_input.submit(lookup_interface, inputs=phrase_input, outputs=outputs)
        gr.Examples(examples=[["light year"], ["blue sky"]], inputs=phrase_input)

    return interface


__all__ = ["create_interface"]
