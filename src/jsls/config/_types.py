from typing import List, Optional, TypedDict


# Client settings (the "jsonSchemaLanguageServer" configuration section)
class DocumentSettings(TypedDict, total=False):
    defaultDialect: Optional[str]
    schemaFilePatterns: List[str]
