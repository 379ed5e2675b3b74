# gluekit

gluekit is a small asyncio toolkit for building agents on top of a
streaming language-model provider. You supply the provider. gluekit
supplies the pieces around it:

- **Normalized types** (`gluekit.types`). This module defines the
  following:
  - the enums `MessageRole`, `ContentType`, `StopReason`,
    `ProviderEventType` and `EventType`;
  - the dataclasses `Message`, `ContentPart`, `ImageContent`, `ToolCall`,
    `Usage`, `ToolSpec`, `Tool`, `ToolResult`, `ProviderRequest`,
    `ProviderEvent` and `Event`;
  - the abstract base class `Provider`.

  These classes convert to and from JSON-friendly dictionaries: `ToolCall`,
  `ContentPart`, `Usage`, `Message`, `ToolSpec`, `ToolResult`,
  `ProviderEvent` and `Event`. Each has `to_dict` and a `from_dict`
  classmethod. `Tool.to_dict` serializes only the specification; the
  executor is never included. `ProviderRequest` has no dictionary
  conversion. Tool arguments and parameter schemas are held as JSON text.
  Empty optional fields are left out of the dictionaries.
- **The agent loop** (`gluekit.loop`). `await run(RunRequest(...))` does
  the following:
  - streams one assistant turn from a `Provider`;
  - runs the tools that the assistant asked for, either one after another
    or concurrently with `parallel=True`;
  - appends the tool results;
  - repeats until the assistant stops asking for tools.
- **Failover** (`gluekit.failover`). `with_failover(a, b, ...)` returns a
  `FailoverProvider` that tries each provider in turn.
- **Compaction** (`gluekit.compactor`). This module offers two
  compactors, `KeepRecentMessages` and `SummarizingCompactor`.
- **Project context** (`gluekit.project_context`). It loads `AGENTS.md`,
  skills and roles from a working directory.
- **Versioned prompts** (`gluekit.prompts`). `Catalog` serves
  `<version>.md` files from a directory.
- **Ready-made pieces**:
  - `gluekit.echo.EchoProvider` is a provider that echoes the latest user
    message back.
  - `gluekit.local_time.local_time_tool()` is a sample tool.

gluekit needs Python 3.11 or later and has no dependencies beyond the
standard library.

## Writing a provider

A provider subclasses `gluekit.types.Provider` and implements
`stream(request)`. It usually does this as an async generator. The
generator takes a `ProviderRequest` and yields `ProviderEvent` values in
this order:

1. a `START` event;
2. any number of `TEXT_DELTA`, `THINKING_DELTA` and `TOOL_CALL` events;
3. exactly one `DONE` event or `ERROR` event.

The provider may also raise before it yields anything.
`gluekit.echo.EchoProvider` is the smallest complete example. It replies
with the text of the latest user message. If its optional `prefix` is set,
the prefix comes first.

## Running the loop

```python
import asyncio

from gluekit.echo import EchoProvider
from gluekit.loop import RunRequest, run
from gluekit.types import ContentPart, ContentType, Message, MessageRole


async def main() -> None:
    result = await run(
        RunRequest(
            provider=EchoProvider(prefix="echo: "),
            model="echo-v1",
            messages=[
                Message(
                    role=MessageRole.USER,
                    content=[ContentPart(type=ContentType.TEXT, text="hi")],
                )
            ],
        )
    )
    print(result.new_messages[-1].content[0].text)  # echo: hi


asyncio.run(main())
```

`RunResult.messages` is the full transcript. `RunResult.new_messages`
holds only the messages that this run produced. The input messages are
copied, so the run never changes the list you passed in.

### Tools

A `Tool` is a `ToolSpec`, which has a `name`, a `description` and a JSON
`parameters` schema, together with an `execute` callable. The callable
receives the `ToolCall` and returns a `ToolResult`. It may be a coroutine
function or a plain function. Before the executor is called, the arguments
are normalized to a JSON object. Empty arguments become `{}`.

Tool problems do not stop the run. Each of the following becomes a tool
message with `is_error=True`, so the model can see it and react:

- an unknown tool;
- arguments that are not a JSON object;
- a tool without an executor;
- an executor that raises.

Tool results are appended in the order the assistant requested them, and
the `TOOL_START` and `TOOL_END` events follow the same order. This holds
even in `parallel` mode.

### Events and failures

Pass `emit=callback` to receive a copy of every `Event`, in this order:

- `LOOP_START`;
- then, for each turn, `TURN_START`, `MESSAGE_START`, any `TEXT_DELTA`
  events, `MESSAGE_END`, the tool events and `TURN_END`;
- `LOOP_END` last of all.

The following failures raise `LoopError`:

- a missing provider;
- a provider that raises;
- an `ERROR` event;
- a stream that ends before `DONE`.

An exhausted turn budget raises `MaxTurnsExceededError`, which is a
subclass of `LoopError`. The budget is `max_turns` and defaults to 32. In
this case the last assistant message is marked `StopReason.MAX_TURNS`.

The exception's `result` attribute holds the transcript as it stood when
the run failed, and an `ERROR` event is emitted before the exception is
raised. If the task is cancelled, an `ERROR` event is emitted and the
cancellation propagates.

## Failover

```python
from gluekit.failover import FailoverError, with_failover

provider = with_failover(primary, backup)
```

The wrapper moves on to the next provider in three cases:

- the provider raises before its first event;
- its first event is an `ERROR`;
- its stream is empty.

Once a provider yields a non-error first event, the wrapper stays with it
for the rest of the turn. If every provider fails, it raises
`FailoverError`. The error's `attempts` list holds one `FailoverAttempt`
for each failed provider, with `index` and `error` fields. A wrapper with
no providers raises `ValueError`.

## Compaction

Both compactors are used the same way: `await compactor.compact(messages)`.
Each returns a new list and never changes its input.

`KeepRecentMessages(n)` keeps the last `n` messages. It replaces the older
ones with one assistant note that says how many were dropped. The note's
metadata is `{"compaction": "keep_recent", "dropped": k}`. If `n` is not
positive, it raises `CompactionError`.

`SummarizingCompactor` has these fields: `provider`, `model`,
`target_tokens`, `keep_recent` and `system_prompt`.

- The input comes back unchanged if it has no more than `keep_recent`
  messages, or if its estimated size is within `target_tokens`. The
  defaults are 8 messages and 8000 tokens.
- The size estimate comes from `estimate_tokens`. It counts words with
  `count_words`, takes three quarters of the count and rounds up.
- Otherwise, the compactor formats the older messages with
  `render_transcript_for_summary` and sends them to the provider in one
  request.
- The provider's answer becomes a single assistant message. Its metadata
  includes:
  - `compaction: "summarizing"`;
  - `original_message_count`;
  - `original_first_ts` and `original_last_ts`, when the older messages
    carry timestamps.
- If `system_prompt` is empty, the compactor uses
  `DEFAULT_SUMMARIZING_SYSTEM_PROMPT`.

`SummarizingCompactor` raises `CompactionError` in these cases:

- no provider is set;
- the provider fails;
- the provider reports an error event;
- the provider returns an empty summary.

It never falls back to dropping context.

## Project context and skills

```python
from gluekit.project_context import (
    append_role_to_system_prompt,
    build_skill_prompt,
    compose_system_prompt,
    load_context,
)

ctx = load_context(".")
system_prompt = compose_system_prompt("You are helpful.", ctx.agents_md, ctx.skills)
user_prompt = build_skill_prompt(ctx.skills["triage"], {"issue": 42})
```

`load_context` reads three kinds of file:

- `AGENTS.md`;
- skills from `.agents/skills/<name>/SKILL.md`;
- roles from `roles/*.md`.

A blank directory argument gives an empty `ProjectContext`. If any of
these files or directories is missing, that is not an error.

A skill or role file may begin with a `---` frontmatter block that sets
`name`, `description` and `model`. Use `parse_markdown_with_frontmatter`
to parse such a block directly. If the block is opened but never closed,
it raises `FrontmatterError`.

`compose_system_prompt` joins the base prompt, `AGENTS.md` and an
`## Available Skills` list sorted by skill name. `build_skill_prompt`
appends the arguments to the skill's instructions as indented JSON.
`append_role_to_system_prompt` adds a `## Role: <name>` block.

## Prompt catalogs

```python
from gluekit.prompts import Catalog, PromptCatalogError

catalog = Catalog("prompts", "v2")   # prompts/v1.md, prompts/v2.md, ...
catalog.versions()                   # ['v1', 'v2']
catalog.default()                    # 'v2'
body = catalog.get()                 # blank version -> the default
body = catalog.get("v1")             # ends in exactly one newline
```

`Catalog` raises `PromptCatalogError` in three cases:

- the directory cannot be read;
- the default version is empty or missing;
- `get` is asked for an unknown version.

An unknown-version error lists every version that is available.

## The `local_time` tool

`local_time_tool()` returns a `Tool` named `local_time`. Its executor
reads a required `timezone` string from the arguments. It answers with
JSON of the form `{"time": ..., "timezone": ...}`.

The `timezone` label is only echoed back. The time is the machine's
current local time, in ISO 8601 format. If the arguments are malformed or
there is no timezone, the executor raises `ValueError`.

## What gluekit does not do

gluekit has:

- no agent or session object that keeps a conversation across prompts;
- no session storage;
- no command-line program;
- no network-backed provider.

To build an agent you call `run` yourself. You choose when to call a
compactor. You store the transcript wherever you like, for example with
`Message.to_dict`. You write the provider for your model service.

## Running the tests

Install the `test` extra, then run `pytest` from the project root.