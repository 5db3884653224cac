# quamina

Building blocks for matching JSON events against JSON patterns.

Patterns and events are both JSON objects. A pattern names fields by
their path from the root of the object and lists the values each field
may take. This package compiles patterns into typed field lists and
flattens events into lists of path/value fields. It reads only the paths
that a caller's tracker marks as used.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Patterns

`quamina.pattern.pattern_from_json` takes a pattern as `bytes` or `str`.
It returns a list of `PatternField` objects in document order. Each one
has a `path` and a list `vals` of `TypedVal` values. In the path, nested
member names are joined with a newline.

```python
from quamina.pattern import pattern_from_json

fields = pattern_from_json(b'{"x": {"a": [27, 28], "b": {"m": ["a", "b"]}}}')
for field in fields:
    print(repr(field.path), [(v.v_type, v.val) for v in field.vals])
```

A `TypedVal` has these members:

- `v_type`: a `ValType`.
- `val`: the value's text. Strings keep their quotation marks. Numbers
  keep the text as it was written.
- `list`: for `anything-but`, the excluded strings as quoted bytes.

A pattern value can be a string, a number, `true`, `false` or `null`. It
can also be one of these special forms:

- `{"exists": true}` or `{"exists": false}`
- `{"prefix": "https:"}`
- `{"anything-but": ["joe", "tim"]}`. The list must hold only strings
  and must not be empty.

`exists` and `anything-but` cannot be combined with other values for the
same field. Any other special form is rejected. A malformed pattern
raises `PatternError`, which is a subclass of `ValueError`.

## Flattening events

`quamina.flatten_json.JSONFlattener.flatten(event, tracker)` reads a JSON
object given as bytes and returns a list of `Field` objects. A `Field`
has these members:

- `path`: the newline-separated path.
- `val`: the value as written in the event. Strings keep their quotation
  marks and have their escapes resolved.
- `array_trail`: a list of `ArrayPos(array, pos)` entries, one for each
  array the value sits in.
- `is_q_number`: tells whether the number can be Q-encoded.

The tracker is a `quamina.flattener.SegmentsTreeTracker`. This is an
abstract class, and you supply the implementation. It must provide
`is_root`, `is_segment_used`, `get`, `path_for_segment`, `fields_count`
and `nodes_count`. With these the flattener can skip members that no
pattern uses. It also stops reading once every used field has been seen.

A malformed event raises `quamina.flatten_scan.FlattenError`, which is a
subclass of `ValueError`. Its `line` and `column` members locate the
problem, and its message includes them.

Other methods:

- `reset()` clears the per-event state.
- `copy()` returns a fresh flattener.

`quamina.flatten_scan` also exposes the single-value readers that the
flattener uses, such as `read_number`, `read_string_value`,
`read_member_name` and `skip_block`.

## Numbers

`quamina.numbers.q_num_from_bytes` and `q_num_from_float` map numbers to
14-character upper-case hexadecimal byte strings. They accept numbers
between -5e9 and 5e9 inclusive with at most five fractional digits. The
strings sort in the same order as the numbers, so `35`, `35.000` and
`3.5e1` all give the same result. A number outside these limits, or text
that is not a number, raises `ValueError`.

## Other pieces

- `quamina.match_set.MatchSet` is a set of match identifiers. `add_x`
  returns a new set and leaves the original unchanged. When it is given
  nothing to add, it returns the set itself. `add_x_single_threaded`
  adds to the set in place. `matches()` returns the members as a list.
- `quamina.live_patterns.MemState` is a thread-safe, in-memory record of
  the pattern texts added under each identifier. It provides `add`,
  `contains`, `delete` (which returns how many patterns were removed)
  and `iterate(fn)`. Any exception raised by `fn` propagates to the
  caller.

## What this package does not do

There is no matcher here. Nothing builds an automaton from compiled
patterns or reports which patterns an event matches. The package also
ships no concrete `SegmentsTreeTracker`. The pieces above are the
parsing, flattening and encoding layers that such a matcher would be
built on.