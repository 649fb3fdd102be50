from typing import Optional


class ArgumentError(Exception):
    """コマンドライン引数・設定ファイルの不正を表す例外。"""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        column_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.column_number = column_number

    def __str__(self):
        if self.line_number is not None:
            return f"Argument Error: {self.message} (Line: {self.line_number}, Column: {self.column_number})"
        return f"Argument Error: {self.message}"


class NoExtensionError(ArgumentError):
    """出力ファイル名を導出できない (拡張子が無い) 入力パス。"""

    def __init__(self, path: str):
        super().__init__(f"Cannot derive output name, no file extension: {path}")
        self.path = path


class PipelineError(Exception):
    """パイプライン処理で発生したエラーの基底クラス。"""

    label = "Pipeline Error"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self):
        if self.stage:
            return f"{self.label}: {self.message} (Stage: {self.stage})"
        return f"{self.label}: {self.message}"


class ResourceError(PipelineError):
    """Unreadable input or an allocation failure inside the codec."""

    label = "Resource Error"


class CompositeError(PipelineError):
    """Watermark rasterization or blending failed."""

    label = "Composite Error"


class EncodeError(PipelineError):
    """Serializing the image to its output format failed."""

    label = "Encode Error"


class WriteError(PipelineError):
    """Writing the encoded bytes to disk failed."""

    label = "Write Error"
