import jsonschema

from hunyuan.tools.base import Tool, normalize_schema


class ToolValidator:
    @staticmethod
    def validate(tool: Tool, arguments: dict) -> tuple[bool, str | None]:
        """Check model-supplied *arguments* against the tool's schema.

        The error names the offending argument so the model can correct it
        on the next round.
        """
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(tool.parameters),
            )
            return True, None
        except jsonschema.ValidationError as e:
            if e.path:
                return False, f"{tool.name} argument {e.json_path}: {e.message}"
            return False, f"{tool.name} arguments: {e.message}"
