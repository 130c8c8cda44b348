"""Statement loop that runs inside the guest interpreter.

Self-contained (standard library only): the host passes this file's source to
``python -c`` so the guest does not need icarebridge installed.

Protocol, one JSON object per line:
    host -> guest  {"id": <n>, "source": "<statements>"}
    guest -> host  {"id": <n>, "ok": true, "value": <tagged>} | {"id": <n>, "ok": false, "error": "<Type>: <message>"}
"""

import ast
import json
import sys
import traceback

MAP_TAG = "$map"
SEQ_TAG = "$seq"


def tag(value):
    """Convert a guest value to JSON, keeping maps and sequences distinguishable."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {MAP_TAG: [[tag(k), tag(v)] for k, v in value.items()]}
    if isinstance(value, (list, tuple, set, frozenset)):
        return {SEQ_TAG: [tag(v) for v in value]}
    tolist = getattr(value, "tolist", None)  # numpy arrays and scalars
    if callable(tolist):
        return tag(tolist())
    return str(value)


def execute(source, namespace):
    """Run ``source``; a trailing expression statement becomes the result."""
    tree = ast.parse(source, filename="<icarebridge>", mode="exec")
    tail = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        tail = ast.Expression(body=tree.body.pop().value)
    exec(compile(tree, "<icarebridge>", "exec"), namespace)
    if tail is None:
        return None
    return eval(compile(tail, "<icarebridge>", "eval"), namespace)


def main():
    protocol = sys.stdout
    # Guest prints must not corrupt the reply channel
    sys.stdout = sys.stderr
    namespace = {"__name__": "__icarebridge__"}
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        line = line.strip()
        if not line:
            continue
        request_id = None
        try:
            request = json.loads(line)
            request_id = request.get("id")
            value = execute(request["source"], namespace)
            reply = json.dumps({"id": request_id, "ok": True, "value": tag(value)})
        except Exception as exc:
            message = "".join(traceback.format_exception_only(type(exc), exc)).strip()
            reply = json.dumps({"id": request_id, "ok": False, "error": message})
        protocol.write(reply + "\n")
        protocol.flush()


if __name__ == "__main__":
    main()
