"""
_parser.py
==========
Bracket-notation (NEWICK) parsing.

Public API
----------
  parse_newick(text)   -> Tree
  load_tree(path)      -> Tree
  save_tree(tree, path)
  parse_arrays(text)   -> NodeArrays   (the raw parallel lists behind a Tree)

Grammar
-------
  tree     := node ';'
  node     := leaf | '(' node (',' node)* ')' tail
  leaf     := label [':' length]
  tail     := [label] [':' length]

Leaves are split on their LAST colon.  For an internal node the FIRST ``(``
and the LAST ``)`` bound the child list, and whatever follows the closing
bracket is the node's own ``label:length``.  Internal-node labels normally
carry a support value.

Node numbering
--------------
Ids are assigned while parsing ("assign during parse"): the root is 0 and
every other node gets its parent's running maximum descendant id + 1.  The
work stack pops children in encounter order, so the result is exactly a
pre-order numbering and a node's id is its index in the arrays.

The parser never recurses; nesting depth is bounded only by memory.
"""

import logging
import math
from typing import List, NamedTuple, Tuple

from phylosort._exceptions import NewickParseError


logger = logging.getLogger(__name__)

TERMINATOR = ";"


class NodeArrays(NamedTuple):
    """Parallel per-node lists produced by :func:`parse_arrays`."""

    parent: List[int]
    length: List[float]
    level: List[int]
    labels: List[str]
    children: List[List[int]]


# ======================================================================== #
# Lexical helpers                                                           #
# ======================================================================== #


def split_label(text: str) -> Tuple[str, float]:
    """
    Split a ``label:length`` descriptor on its last colon.

    A descriptor without a colon is all label and gets length 0.

    Raises
    ------
    NewickParseError   if the text after the colon is not a finite number, or the
                       descriptor holds a structural character.
    """
    for i, c in enumerate(text):
        if c in "(),":
            raise NewickParseError(f"unexpected {c!r} in node descriptor", text, i)
    label, sep, length_text = text.rpartition(":")
    if not sep:
        return text.strip(), 0.0
    try:
        value = float(length_text)
    except ValueError:
        raise NewickParseError("branch length is not a number", text) from None
    # float() also takes "nan", "inf" and digit separators such as "1_0".
    if "_" in length_text or not math.isfinite(value):
        raise NewickParseError("branch length is not a finite number", text)
    return label.strip(), value


def split_children(text: str) -> List[str]:
    """
    Split the inside of a bracket pair at the commas of nesting depth zero.

    Parameters
    ----------
    text : str
        Text strictly between a node's opening and closing brackets.

    Returns
    -------
    list[str]   One segment per child, in encounter order.

    Raises
    ------
    NewickParseError   if a closing bracket appears before its opener.
    """
    segments = []
    depth = 0
    start = 0
    for i, c in enumerate(text):
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth < 0:
                raise NewickParseError("unbalanced ')'", text, i)
        elif c == "," and depth == 0:
            segments.append(text[start:i])
            start = i + 1
    segments.append(text[start:])
    return segments


def check_brackets(text: str) -> None:
    """
    Verify that the brackets of *text* balance.

    Raises
    ------
    NewickParseError   if the running depth ever goes negative, or does not
                       return to zero at the end of the text.
    """
    depth = 0
    for i, c in enumerate(text):
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth < 0:
                raise NewickParseError("unbalanced ')'", text, i)
    if depth != 0:
        raise NewickParseError(f"{depth} unclosed '('", text)


# ======================================================================== #
# Parsing                                                                   #
# ======================================================================== #


def parse_arrays(text: str) -> NodeArrays:
    """
    Parse terminated bracket-notation *text* into parallel node lists.

    Parameters
    ----------
    text : str
        A single tree, e.g. ``"((a:1,b:2)95:0.5,c:3);"``.  Surrounding
        whitespace is ignored; the ``;`` terminator is required.

    Returns
    -------
    NodeArrays
        ``parent`` (-1 for the root), ``length``, ``level``, ``labels`` and
        ``children`` lists, all indexed by pre-order node id.

    Raises
    ------
    NewickParseError
        Missing terminator, more than one tree, unbalanced brackets, stray
        text before an opening bracket, a non-numeric branch length, or an
        empty tree.
    """
    s = text.strip()
    if not s.endswith(TERMINATOR):
        raise NewickParseError("missing ';' terminator", text)
    body = s[:-1].strip()
    if not body:
        raise NewickParseError("empty tree", text)
    if TERMINATOR in body:
        raise NewickParseError(
            "more than one ';' terminator", text, body.index(TERMINATOR)
        )
    check_brackets(body)

    parent: List[int] = []
    length: List[float] = []
    level: List[int] = []
    labels: List[str] = []
    children: List[List[int]] = []

    # (segment, parent id).  Children are pushed in reverse so the first one
    # is popped next; that keeps ids in pre-order.
    stack = [(body, -1)]
    while stack:
        segment, parent_id = stack.pop()
        segment = segment.strip()

        node_id = len(labels)
        parent.append(parent_id)
        level.append(0 if parent_id < 0 else level[parent_id] + 1)
        children.append([])
        if parent_id >= 0:
            children[parent_id].append(node_id)

        open_at = segment.find("(")
        if open_at < 0:
            label, node_length = split_label(segment)
            labels.append(label)
            length.append(node_length)
            continue

        close_at = segment.rfind(")")
        if close_at < open_at:
            raise NewickParseError("unbalanced brackets", segment)
        if segment[:open_at].strip():
            raise NewickParseError("unexpected text before '('", segment, 0)

        label, node_length = split_label(segment[close_at + 1 :])
        labels.append(label)
        length.append(node_length)

        for child in reversed(split_children(segment[open_at + 1 : close_at])):
            stack.append((child, node_id))

    return NodeArrays(parent, length, level, labels, children)


def parse_newick(text: str):
    """
    Parse terminated bracket-notation *text* and return a :class:`Tree`.

    Equivalent to ``Tree(text)``.
    """
    from phylosort._tree import Tree

    return Tree(text)


def load_tree(path):
    """
    Read a tree file and parse the first tree in it.

    Every line is trimmed and the lines are joined with no separator; the
    text up to and including the first ``;`` is parsed and the rest of the
    file is ignored.

    Parameters
    ----------
    path : str or os.PathLike

    Returns
    -------
    Tree

    Raises
    ------
    NewickParseError   if the file is not UTF-8 text, holds no ``;`` or the
                       tree is malformed.
    OSError            if the file cannot be read.
    """
    try:
        with open(path, encoding="utf-8") as handle:
            joined = "".join(line.strip() for line in handle)
    except UnicodeDecodeError as exc:
        raise NewickParseError(f"cannot decode {path}: {exc.reason}") from exc

    end = joined.find(TERMINATOR)
    if end < 0:
        raise NewickParseError(f"no ';' terminator in {path}")

    logger.debug("Parsing tree from %s (%d characters)", path, end + 1)
    return parse_newick(joined[: end + 1])


def save_tree(tree, path) -> None:
    """
    Write *tree* to *path* in bracket notation, followed by a newline.

    The file is overwritten.  ``load_tree(path)`` gives back a tree with the
    same serialized form.

    Parameters
    ----------
    tree : Tree
    path : str or os.PathLike
    """
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(tree.to_newick())
        handle.write("\n")
    logger.debug("Wrote %d-node tree to %s", tree.n_nodes, path)
