"""CMake project discovery for auto-generating analysis configuration."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from pathlib import Path
import json
import logging
import re
import shlex

logger = logging.getLogger(__name__)


# CMake変数と展開先の対応（project_root / 現在ディレクトリ）
_ROOT_VARIABLES = ("CMAKE_SOURCE_DIR", "PROJECT_SOURCE_DIR")
_CURRENT_VARIABLES = ("CMAKE_CURRENT_SOURCE_DIR", "CMAKE_CURRENT_LIST_DIR")

_SCOPE_KEYWORDS = ("PUBLIC", "PRIVATE", "INTERFACE", "SYSTEM", "BEFORE", "AFTER")


@dataclass
class CMakeConfig:
    """CMakeプロジェクトから抽出した解析設定。

    Attributes:
        include_paths: インクルードパスのリスト
        source_directories: ソースディレクトリのリスト
        source_files: コンパイル対象のソースファイル（compile_commands.json由来）
        compiler_args: -D定義などのコンパイラ引数
        cxx_standard: C++標準（c++14, c++17など）
        project_name: プロジェクト名
    """
    include_paths: List[str] = field(default_factory=list)
    source_directories: List[str] = field(default_factory=list)
    source_files: List[str] = field(default_factory=list)
    compiler_args: List[str] = field(default_factory=list)
    cxx_standard: Optional[str] = None
    project_name: Optional[str] = None


class CMakeParser:
    """CMakeプロジェクトを解析し、解析対象のファイルとフラグを抽出する。

    compile_commands.json が存在すればそれを優先し、
    存在しない場合は CMakeLists.txt を静的に解析する。
    """

    BUILD_DIRECTORIES = (
        "build",
        "cmake-build-debug",
        "cmake-build-release",
        "out/build",
        ".",
    )

    def __init__(self, project_root: str):
        """Initialize CMakeParser.

        Args:
            project_root: CMakeプロジェクトのルートディレクトリパス
        """
        self.project_root = Path(project_root).resolve()

    def parse(self) -> CMakeConfig:
        """CMakeプロジェクトを解析する。

        Returns:
            CMakeConfig: 抽出された設定
        """
        compile_commands = self._find_compile_commands()
        if compile_commands:
            logger.info(f"Using compile_commands.json: {compile_commands}")
            return self._parse_compile_commands(compile_commands)

        logger.info("Parsing CMakeLists.txt statically")
        return self._parse_cmake_files()

    def _find_compile_commands(self) -> Optional[Path]:
        for build_dir in self.BUILD_DIRECTORIES:
            path = self.project_root / build_dir / "compile_commands.json"
            if path.exists():
                return path
        return None

    def _parse_compile_commands(self, path: Path) -> CMakeConfig:
        """compile_commands.json をパースする。

        Args:
            path: compile_commands.json のパス

        Returns:
            CMakeConfig: 抽出された設定
        """
        config = CMakeConfig()

        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to parse compile_commands.json: {e}")
            return config

        include_set: Dict[str, None] = {}
        definitions: Dict[str, None] = {}
        source_files: Dict[str, None] = {}

        for entry in entries:
            directory = Path(entry.get("directory") or path.parent)
            args = entry.get("arguments")
            if not args:
                args = shlex.split(entry.get("command", ""))

            includes, defines, standard = self._extract_flags(args, directory)
            include_set.update(dict.fromkeys(includes))
            definitions.update(dict.fromkeys(defines))
            if standard:
                config.cxx_standard = standard

            source_file = entry.get("file")
            if source_file:
                source_path = Path(source_file)
                if not source_path.is_absolute():
                    source_path = directory / source_path
                source_path = source_path.resolve()
                if source_path.exists():
                    source_files[str(source_path)] = None

        config.include_paths = sorted(include_set)
        config.compiler_args = sorted(definitions)
        config.source_files = sorted(source_files)
        config.source_directories = sorted({str(Path(f).parent) for f in source_files})

        logger.info(
            f"Extracted from compile_commands.json: "
            f"{len(config.source_files)} source files, "
            f"{len(config.include_paths)} include paths, "
            f"{len(config.compiler_args)} definitions"
        )
        return config

    def _extract_flags(
        self,
        args: List[str],
        directory: Path
    ) -> Tuple[List[str], List[str], Optional[str]]:
        """コンパイラ引数から -I / -D / -std= を取り出す。

        Args:
            args: コンパイラ引数
            directory: 相対パスの基準となるビルドディレクトリ

        Returns:
            (インクルードパス, 定義, C++標準) のタプル
        """
        includes: List[str] = []
        defines: List[str] = []
        standard: Optional[str] = None

        it = iter(args)
        for arg in it:
            if arg in ("-I", "-isystem"):
                value = next(it, "")
            elif arg.startswith("-I"):
                value = arg[2:]
            elif arg.startswith("-D"):
                defines.append(arg if len(arg) > 2 else f"-D{next(it, '')}")
                continue
            elif arg.startswith("-std="):
                standard = arg.split("=", 1)[1]
                continue
            else:
                continue

            if not value:
                continue
            inc_path = Path(value)
            if not inc_path.is_absolute():
                inc_path = directory / inc_path
            try:
                resolved = inc_path.resolve()
            except (OSError, ValueError):
                continue
            if resolved.is_dir():
                includes.append(str(resolved))

        return includes, defines, standard

    def _parse_cmake_files(self) -> CMakeConfig:
        """CMakeLists.txt を静的解析する。

        Returns:
            CMakeConfig: 抽出された設定
        """
        config = CMakeConfig()
        cmake_file = self.project_root / "CMakeLists.txt"

        if not cmake_file.exists():
            logger.warning(f"CMakeLists.txt not found at {cmake_file}")
            return config

        content = self._read(cmake_file)
        if content is None:
            return config

        project_match = re.search(r'project\s*\(\s*(\w+)', content, re.IGNORECASE)
        if project_match:
            config.project_name = project_match.group(1)

        std_match = re.search(
            r'set\s*\(\s*CMAKE_CXX_STANDARD\s+(\d+)\s*\)',
            content,
            re.IGNORECASE
        )
        if std_match:
            config.cxx_standard = f"c++{std_match.group(1)}"

        self._collect_commands(content, self.project_root, config)

        for match in re.finditer(r'add_subdirectory\s*\(\s*([^\s\)]+)', content, re.IGNORECASE):
            subdir = (self.project_root / match.group(1).strip('"\'')).resolve()
            if subdir.is_dir():
                config.source_directories.append(str(subdir))

        # サブディレクトリの CMakeLists.txt も解析
        for subdir in list(config.source_directories):
            sub_content = self._read(Path(subdir) / "CMakeLists.txt")
            if sub_content:
                self._collect_commands(sub_content, Path(subdir), config)

        # ソースディレクトリがない場合は一般的なディレクトリを探す
        if not config.source_directories:
            for common_dir in ("src", "source", "lib"):
                src_dir = self.project_root / common_dir
                if src_dir.is_dir():
                    config.source_directories.append(str(src_dir.resolve()))
                    break

        config.include_paths = list(dict.fromkeys(config.include_paths))
        config.source_directories = list(dict.fromkeys(config.source_directories))
        config.compiler_args = list(dict.fromkeys(config.compiler_args))

        logger.info(
            f"Extracted from CMakeLists.txt: "
            f"{len(config.include_paths)} include paths, "
            f"{len(config.source_directories)} source directories, "
            f"{len(config.compiler_args)} definitions"
        )
        return config

    def _collect_commands(self, content: str, base_dir: Path, config: CMakeConfig) -> None:
        """インクルードディレクトリと定義のコマンドを1ファイル分集める。"""
        for match in re.finditer(
            r'(?:target_)?include_directories\s*\(([^)]+)\)',
            content,
            re.IGNORECASE
        ):
            text = match.group(1)
            if match.group(0).lower().startswith("target_"):
                # 先頭のターゲット名を除く
                text = text.strip().split(None, 1)[1] if len(text.split()) > 1 else ""
            config.include_paths.extend(self._parse_path_list(text, base_dir))

        for match in re.finditer(
            r'(?:target_)?(?:add_)?compile_definitions\s*\(([^)]+)\)',
            content,
            re.IGNORECASE
        ):
            text = match.group(1)
            if match.group(0).lower().startswith("target_"):
                text = text.strip().split(None, 1)[1] if len(text.split()) > 1 else ""
            config.compiler_args.extend(self._parse_definition_list(text))

    def _read(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def _expand_variables(self, text: str, base_dir: Path) -> str:
        for name in _ROOT_VARIABLES:
            text = text.replace("${%s}" % name, str(self.project_root))
        for name in _CURRENT_VARIABLES:
            text = text.replace("${%s}" % name, str(base_dir))
        return text

    def _parse_path_list(self, text: str, base_dir: Path) -> List[str]:
        """パスリストを存在するディレクトリの絶対パスに解決する。"""
        paths: List[str] = []

        for item in self._expand_variables(text, base_dir).split():
            item = item.strip('"\'')
            # 未展開の変数やキーワードをスキップ
            if not item or item.startswith("$") or item in _SCOPE_KEYWORDS:
                continue

            path = Path(item)
            if not path.is_absolute():
                path = base_dir / path
            try:
                resolved = path.resolve()
            except (OSError, ValueError) as e:
                logger.debug(f"Failed to resolve path {item}: {e}")
                continue
            if resolved.is_dir():
                paths.append(str(resolved))

        return paths

    def _parse_definition_list(self, text: str) -> List[str]:
        defs: List[str] = []

        for item in text.split():
            item = item.strip('"\'')
            if not item or item.startswith("$") or item in _SCOPE_KEYWORDS:
                continue
            defs.append(item if item.startswith("-D") else f"-D{item}")

        return defs
