"""
Emission of the wrapper method of a single stored routine.

A wrapper method has one of two shapes:

- Direct: all arguments are rendered into the SQL text and the designation's
  result handler runs the statement through a runtime helper.
- LOB: the statement is prepared with a `?` per LOB parameter, every LOB
  value is streamed in chunks of the data layer's chunk size, and the
  designation's fetch and return code runs against the prepared statement.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sproc_sync.errors import WrapperError
from sproc_sync.models import ParameterDescriptor, RoutineMetadata, RoutineType
from sproc_sync.naming import NameMangler
from sproc_sync.wrapper.code_store import INDENT, PythonCodeStore
from sproc_sync.wrapper.data_types import escape_expression, is_lob, python_type_hint
from sproc_sync.wrapper.designations import DesignationStrategy, strategy_for

logger = logging.getLogger(__name__)


def _doc_text(text: str) -> str:
    """Make text safe for a triple-quoted docstring."""
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


class RoutineWrapper:
    """
    Writes the wrapper method of one routine into a code store.

    Usage:
        code = PythonCodeStore(level=1)
        RoutineWrapper(routine, code, SnakeCaseMangler()).write_method()
    """

    def __init__(
        self,
        routine: RoutineMetadata,
        code: PythonCodeStore,
        mangler: NameMangler,
        lob_as_string: bool = False,
    ):
        self.routine = routine
        self.code = code
        self.mangler = mangler
        self.lob_as_string = lob_as_string
        self.strategy: DesignationStrategy = strategy_for(routine.designation)

    @property
    def method_name(self) -> str:
        return self.mangler.method_name(self.routine.routine_name)

    def parameter_name(self, parameter: ParameterDescriptor) -> str:
        return self.mangler.parameter_name(parameter.name)

    def is_lob_parameter(self, parameter: ParameterDescriptor) -> bool:
        return not self.lob_as_string and is_lob(parameter.data_type)

    def lob_parameters(self) -> List[Tuple[int, ParameterDescriptor]]:
        """LOB parameters with their placeholder index, in positional order."""
        lobs = [p for p in self.routine.parameters if self.is_lob_parameter(p)]
        return list(enumerate(lobs))

    @property
    def is_lob_routine(self) -> bool:
        return bool(self.lob_parameters())

    def return_type(self) -> str:
        return self.strategy.return_type(self.routine)

    # ------------------------------------------------------------------
    # Signature and docstring
    # ------------------------------------------------------------------

    def wrapper_args(self) -> str:
        """Parameter list of the wrapper method, starting with self."""
        args = ["self"]
        for extra in self.strategy.extra_parameters:
            args.append(f"{extra.name}: {extra.type_hint}")
        for parameter in self.routine.parameters:
            hint = python_type_hint(parameter.data_type)
            args.append(f"{self.parameter_name(parameter)}: Optional[{hint}]")
        return ", ".join(args)

    def routine_args(self) -> str:
        """Argument list of the SQL call, as the body of an f-string."""
        return ", ".join(
            escape_expression(p.data_type, self.parameter_name(p), self.lob_as_string)
            for p in self.routine.parameters
        )

    def query(self) -> str:
        """Python expression of the SQL statement that invokes the routine."""
        keyword = "select" if self.routine.routine_type == RoutineType.FUNCTION else "call"
        args = self.routine_args()
        sql = f"{keyword} {self.routine.routine_name}({args})"
        if "{" in args:
            return f'f"{sql}"'
        return f'"{sql}"'

    def write_signature(self) -> None:
        line = f"def {self.method_name}({self.wrapper_args()}) -> {self.return_type()}:"
        self.code.append(line)

    def docstring_lines(self) -> List[str]:
        routine = self.routine
        lines: List[str] = []
        if routine.short_description:
            lines.extend(routine.short_description.splitlines())
        if routine.long_description:
            if lines:
                lines.append("")
            lines.extend(routine.long_description.splitlines())

        params: List[Tuple[str, str, str, Optional[str]]] = [
            (e.name, e.type_hint, e.description, None) for e in self.strategy.extra_parameters
        ]
        for p in routine.parameters:
            params.append(
                (self.parameter_name(p), python_type_hint(p.data_type), p.description, p.dtd_identifier)
            )

        if params:
            if lines:
                lines.append("")
            lines.append("Args:")
            name_width = max(len(name) for name, _, _, _ in params)
            type_width = max(len(hint) + 3 for _, hint, _, _ in params)
            hang = INDENT + " " * (name_width + type_width + 2)
            for name, hint, description, dtd in params:
                first, *rest = (description or "").splitlines() or [""]
                lines.append(f"{INDENT}{name:<{name_width}} {('(' + hint + '):'):<{type_width}} {first}")
                lines.extend(hang + line for line in rest)
                if dtd:
                    lines.append(hang + dtd)

        return_type = self.return_type()
        if return_type != "None":
            if lines:
                lines.append("")
            lines.append("Returns:")
            lines.append(INDENT + return_type)

        return lines

    def write_docstring(self) -> None:
        lines = self.docstring_lines()
        if not lines:
            return
        self.code.append('"""')
        for line in lines:
            self.code.append(_doc_text(line))
        self.code.append('"""')

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def write_direct_body(self) -> None:
        self.strategy.result_handler(self, self.query())

    def write_lob_body(self) -> None:
        lobs = self.lob_parameters()

        self.code.append(f"_query = {self.query()}")
        self.code.append("_stmt = self.prepare(_query)")
        self.code.append(f"_stmt.bind_nulls({len(lobs)})")

        self.code.append("try:")
        self.code.indent()
        for index, parameter in lobs:
            name = self.parameter_name(parameter)
            self.code.append(f"_data = self.lob_bytes({name})")
            self.code.append("_length = len(_data) if _data is not None else 0")
            self.code.append("_offset = 0")
            self.code.append("while _offset < _length:")
            self.code.indent()
            self.code.append(
                f"_stmt.send_long_data({index}, _data[_offset:_offset + self.chunk_size])"
            )
            self.code.append("_offset += self.chunk_size")
            self.code.dedent()

        self.code.append("self.execute_statement(_stmt, _query)")
        self.strategy.lob_fetch(self)
        self.code.dedent()
        self.code.append("finally:")
        self.code.indent()
        self.code.append("_stmt.close()")
        self.code.append("self.discard_results()")
        self.code.dedent()
        self.strategy.lob_return(self)

    def write_method(self) -> None:
        """Append the complete wrapper method to the code store."""
        if self.routine.hidden:
            raise WrapperError(f"Routine {self.routine.routine_name} is hidden")

        logger.debug(f"Generating wrapper for {self.routine.routine_name}")

        self.write_signature()
        self.code.indent()
        self.write_docstring()
        if self.is_lob_routine:
            self.write_lob_body()
        else:
            self.write_direct_body()
        self.code.dedent()
