# src/gradle_api_deps/classfile.py
"""
Narrow JVM class-file reader.

Only what the module-registry scan needs is decoded: the constant pool, the method
table and each method's Code attribute. Every other structure is skipped by length.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator

MAGIC = 0xCAFEBABE

# constant pool tags
CONSTANT_UTF8 = 1
CONSTANT_INTEGER = 3
CONSTANT_FLOAT = 4
CONSTANT_LONG = 5
CONSTANT_DOUBLE = 6
CONSTANT_CLASS = 7
CONSTANT_STRING = 8
CONSTANT_FIELDREF = 9
CONSTANT_METHODREF = 10
CONSTANT_INTERFACE_METHODREF = 11
CONSTANT_NAME_AND_TYPE = 12
CONSTANT_METHOD_HANDLE = 15
CONSTANT_METHOD_TYPE = 16
CONSTANT_DYNAMIC = 17
CONSTANT_INVOKE_DYNAMIC = 18
CONSTANT_MODULE = 19
CONSTANT_PACKAGE = 20

# payload size after the tag byte, for fixed-size entries
_CONSTANT_SIZES = {
    CONSTANT_INTEGER: 4,
    CONSTANT_FLOAT: 4,
    CONSTANT_LONG: 8,
    CONSTANT_DOUBLE: 8,
    CONSTANT_CLASS: 2,
    CONSTANT_STRING: 2,
    CONSTANT_FIELDREF: 4,
    CONSTANT_METHODREF: 4,
    CONSTANT_INTERFACE_METHODREF: 4,
    CONSTANT_NAME_AND_TYPE: 4,
    CONSTANT_METHOD_HANDLE: 3,
    CONSTANT_METHOD_TYPE: 2,
    CONSTANT_DYNAMIC: 4,
    CONSTANT_INVOKE_DYNAMIC: 4,
    CONSTANT_MODULE: 2,
    CONSTANT_PACKAGE: 2,
}

# opcodes
LDC = 0x12
LDC_W = 0x13
TABLESWITCH = 0xAA
LOOKUPSWITCH = 0xAB
INVOKEVIRTUAL = 0xB6
INVOKESPECIAL = 0xB7
INVOKESTATIC = 0xB8
INVOKEINTERFACE = 0xB9
WIDE = 0xC4
IINC = 0x84

INVOKE_OPCODES = frozenset({INVOKEVIRTUAL, INVOKESPECIAL, INVOKESTATIC, INVOKEINTERFACE})


def _build_instruction_lengths() -> list[int]:
    lengths = [1] * 256
    for op in (0x10, LDC, 0x15, 0x16, 0x17, 0x18, 0x19, 0x36, 0x37, 0x38, 0x39, 0x3A, 0xA9, 0xBC):
        lengths[op] = 2
    for op in (0x11, LDC_W, 0x14, IINC, 0xBB, 0xBD, 0xC0, 0xC1, 0xC6, 0xC7):
        lengths[op] = 3
    for op in range(0x99, 0xA9):  # if* / goto / jsr
        lengths[op] = 3
    for op in range(0xB2, 0xB9):  # get/put field/static, invokevirtual/special/static
        lengths[op] = 3
    lengths[0xC5] = 4  # multianewarray
    for op in (INVOKEINTERFACE, 0xBA, 0xC8, 0xC9):  # invokedynamic, goto_w, jsr_w
        lengths[op] = 5
    return lengths


INSTRUCTION_LENGTHS = _build_instruction_lengths()


class ClassFormatError(ValueError):
    pass


@dataclass(frozen=True)
class MethodCall:
    class_name: str
    owner: str
    name: str
    descriptor: str
    # string pushed by an ldc right before the call
    preceding_constant: str | None


def _decode_utf8(raw: bytes) -> str:
    # modified UTF-8: NUL is C0 80, supplementary chars are surrogate pairs
    return raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="surrogatepass")


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self.data):
            raise ClassFormatError("Truncated class file")
        chunk = self.data[self.pos : end]
        self.pos = end
        return chunk

    def u1(self) -> int:
        return self.take(1)[0]

    def u2(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def u4(self) -> int:
        return struct.unpack(">I", self.take(4))[0]

    def skip_attributes(self) -> None:
        for _ in range(self.u2()):
            self.u2()
            self.take(self.u4())


class ConstantPool:
    def __init__(self, reader: _Reader) -> None:
        count = reader.u2()
        self._entries: list[tuple[int, object] | None] = [None] * count
        i = 1
        while i < count:
            tag = reader.u1()
            if tag == CONSTANT_UTF8:
                self._entries[i] = (tag, _decode_utf8(reader.take(reader.u2())))
            elif tag in (CONSTANT_CLASS, CONSTANT_STRING):
                self._entries[i] = (tag, reader.u2())
            elif tag in (CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF, CONSTANT_NAME_AND_TYPE):
                self._entries[i] = (tag, (reader.u2(), reader.u2()))
            elif tag in _CONSTANT_SIZES:
                reader.take(_CONSTANT_SIZES[tag])
                self._entries[i] = (tag, None)
            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at index {i}")
            # long/double take two slots
            i += 2 if tag in (CONSTANT_LONG, CONSTANT_DOUBLE) else 1

    def _entry(self, index: int, *tags: int) -> object:
        entry = self._entries[index] if 0 < index < len(self._entries) else None
        if entry is None or entry[0] not in tags:
            raise ClassFormatError(f"Unexpected constant pool entry at index {index}")
        return entry[1]

    def tag(self, index: int) -> int | None:
        entry = self._entries[index] if 0 < index < len(self._entries) else None
        return entry[0] if entry else None

    def utf8(self, index: int) -> str:
        return self._entry(index, CONSTANT_UTF8)  # type: ignore[return-value]

    def class_name(self, index: int) -> str:
        return self.utf8(self._entry(index, CONSTANT_CLASS))  # type: ignore[arg-type]

    def string(self, index: int) -> str | None:
        if self.tag(index) != CONSTANT_STRING:
            return None
        return self.utf8(self._entry(index, CONSTANT_STRING))  # type: ignore[arg-type]

    def member_ref(self, index: int) -> tuple[str, str, str] | None:
        """(owner, name, descriptor) of a method ref, None for any other constant."""
        if self.tag(index) not in (CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF):
            return None
        class_index, nat_index = self._entry(index, CONSTANT_METHODREF, CONSTANT_INTERFACE_METHODREF)  # type: ignore[misc]
        name_index, descriptor_index = self._entry(nat_index, CONSTANT_NAME_AND_TYPE)  # type: ignore[misc]
        return self.class_name(class_index), self.utf8(name_index), self.utf8(descriptor_index)


def _switch_length(code: bytes, pc: int) -> int:
    pad = (4 - (pc + 1) % 4) % 4
    base = pc + 1 + pad
    if base + 12 > len(code):
        raise ClassFormatError(f"truncated switch at pc={pc}")
    if code[pc] == TABLESWITCH:
        low, high = struct.unpack(">ii", code[base + 4 : base + 12])
        if high < low:
            raise ClassFormatError(f"tableswitch with high < low at pc={pc}")
        return 1 + pad + 12 + (high - low + 1) * 4
    (npairs,) = struct.unpack(">i", code[base + 4 : base + 8])
    if npairs < 0:
        raise ClassFormatError(f"lookupswitch with negative npairs at pc={pc}")
    return 1 + pad + 8 + npairs * 8


def _iter_code_calls(class_name: str, code: bytes, pool: ConstantPool) -> Iterator[MethodCall]:
    pc = 0
    preceding: str | None = None
    while pc < len(code):
        op = code[pc]
        if op in (TABLESWITCH, LOOKUPSWITCH):
            length = _switch_length(code, pc)
        elif op == WIDE:
            length = 6 if pc + 1 < len(code) and code[pc + 1] == IINC else 4
        else:
            length = INSTRUCTION_LENGTHS[op]
        if length <= 0 or pc + length > len(code):
            raise ClassFormatError(f"{class_name}: truncated instruction at pc={pc}")

        constant: str | None = None
        if op == LDC:
            constant = pool.string(code[pc + 1])
        elif op == LDC_W:
            constant = pool.string(struct.unpack(">H", code[pc + 1 : pc + 3])[0])
        elif op in INVOKE_OPCODES:
            ref = pool.member_ref(struct.unpack(">H", code[pc + 1 : pc + 3])[0])
            if ref is not None:
                owner, name, descriptor = ref
                yield MethodCall(class_name, owner, name, descriptor, preceding)

        preceding = constant
        pc += length


def iter_method_calls(data: bytes) -> Iterator[MethodCall]:
    """Every method invocation in the class, in method/bytecode order."""
    reader = _Reader(data)
    if reader.u4() != MAGIC:
        raise ClassFormatError("Not a class file (bad magic)")
    reader.u2()  # minor
    reader.u2()  # major

    pool = ConstantPool(reader)
    reader.u2()  # access flags
    class_name = pool.class_name(reader.u2())
    reader.u2()  # super class
    reader.take(reader.u2() * 2)  # interfaces

    for _ in range(reader.u2()):  # fields
        reader.take(6)
        reader.skip_attributes()

    for _ in range(reader.u2()):  # methods
        reader.take(6)
        for _ in range(reader.u2()):
            attr_name = pool.utf8(reader.u2())
            attr = reader.take(reader.u4())
            if attr_name != "Code":
                continue
            if len(attr) < 8:
                raise ClassFormatError(f"{class_name}: truncated Code attribute")
            (code_length,) = struct.unpack(">I", attr[4:8])
            yield from _iter_code_calls(class_name, attr[8 : 8 + code_length], pool)
