"""
Generate the source of a plain Java bean from a list of attribute names.

This is a string template, nothing more: attribute names are emitted as-is,
so they must already be valid Java identifiers.
"""

from collections.abc import Iterable

HEADER = "// This string is generated to create a Java class\n"
FOOTER = "// End of the generated string to create a Java class\n"


def capitalize(name: str) -> str:
    """
    Upper-case the first character of ``name`` and leave the rest alone
    (unlike :py:meth:`str.capitalize`).
    """
    if not name:
        return name
    return name[:1].upper() + name[1:]


class SimpleClassGenerator:
    """
    Emit a Java class with one private ``String`` field per attribute and a
    getter/setter pair for each, in the order the attributes were given.
    """

    indent: str = "    "

    def field(self, attribute: str) -> str:
        return f"{self.indent}private String {attribute};\n"

    def getter(self, attribute: str) -> str:
        return (
            f"{self.indent}public String get{capitalize(attribute)}() {{\n"
            f"{self.indent * 2}return {attribute};\n"
            f"{self.indent}}}\n\n"
        )

    def setter(self, attribute: str) -> str:
        return (
            f"{self.indent}public void set{capitalize(attribute)}"
            f"(String {attribute}) {{\n"
            f"{self.indent * 2}this.{attribute} = {attribute};\n"
            f"{self.indent}}}\n\n"
        )

    def generate_java_class(self, attributes: Iterable[str], class_name: str) -> str:
        """
        Return the source of class ``class_name``.

        Args:
            attributes: the attribute names, in the order their fields and
                accessors should appear
            class_name: the name of the generated class

        Returns:
            The class source, ending with a newline.

        """
        attributes = list(attributes)
        parts = [HEADER, f"public class {class_name} {{\n"]
        parts.extend(self.field(attribute) for attribute in attributes)
        parts.append("\n")
        for attribute in attributes:
            parts.append(self.getter(attribute))
            parts.append(self.setter(attribute))
        parts.append("}\n")
        parts.append(FOOTER)
        return "".join(parts)


def generate_class_source(attributes: Iterable[str], class_name: str) -> str:
    """
    Shortcut for ``SimpleClassGenerator().generate_java_class(...)``.
    """
    return SimpleClassGenerator().generate_java_class(attributes, class_name)
