"""
Export service for Exportable resources.

Snapshots the resource's filtered, ordered and capped query into CSV, Excel
(CSV body with an .xlsx filename), JSON, XML or PDF. export_resources()
never raises: every failure comes back as {"success": False, "message": ...}.
"""

import csv
import io
import json
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from admin_panel.core.constants import EXPORT_FORMATS, TIMESTAMP_COLUMNS
from admin_panel.core.exceptions import ExportError
from admin_panel.resources.capabilities import Exportable, ExportConfig
from admin_panel.resources.request import AdminRequest
from admin_panel.resources.resource import column_names
from admin_panel.services.resource_query_service import ResourceQueryService
from admin_panel.services.trash_service import TRASHED_WITH, TrashService
from admin_panel.utils.datetime_utils import export_timestamp, format_datetime_string, utc_now
from admin_panel.utils.naming import snake
from admin_panel.utils.serialization import to_json_value

logger = logging.getLogger(__name__)

_XML_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def _xml_tag(name: str) -> str:
    tag = _XML_NAME.sub("_", name)
    return tag if tag and (tag[0].isalpha() or tag[0] == "_") else f"_{tag}"


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


class ExportService:
    """Service for exporting resource data."""

    @staticmethod
    def config(resource_cls: type) -> ExportConfig:
        if issubclass(resource_cls, Exportable):
            return resource_cls.exporting
        return ExportConfig(enabled=False)

    # ===== Entry point =====

    @staticmethod
    def export_resources(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        format: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        keys: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        """
        Export the resource's rows.

        Args:
            db: Database session
            resource_cls: Resource class to export
            request: Request carrying search, filters, sort_field and limit
            format: One of the configured formats; defaults to the resource default
            options: Optional "fields" (column allow-list) and "filename"
            keys: Restrict the export to these primary keys

        Returns:
            {success, message, data, filename, format, count, generated_at}
        """
        config = ExportService.config(resource_cls)
        options = dict(options or {})
        if not config.enabled:
            return {"success": False, "message": "Export functionality is disabled for this resource.", "data": None}

        format = (format or config.default_format).lower()
        if format not in config.formats or format not in EXPORT_FORMATS:
            return {"success": False, "message": f"Unsupported export format: {format}", "data": None}

        for problem in ExportService.validate_export_parameters(resource_cls, request, options):
            logger.warning(f"Export of {resource_cls.uri_key()}: {problem}")
        if not isinstance(options.get("fields"), (list, tuple, type(None))):
            options.pop("fields")

        try:
            entities = ExportService.export_query(db, resource_cls, request, keys).all()
            rows = ExportService.transform_rows(resource_cls, entities, options)
            data = ExportService.format_rows(resource_cls, rows, format)
            filename = ExportService.generate_filename(resource_cls, format, options)
        except Exception as e:
            logger.exception(f"Export of {resource_cls.uri_key()} as {format} failed: {e}")
            return {"success": False, "message": f"Export failed: {e}", "data": None}

        logger.info(f"Exported {len(rows)} {resource_cls.label()} as {format}")
        return {
            "success": True,
            "message": "Export completed successfully.",
            "data": data,
            "filename": filename,
            "format": format,
            "count": len(rows),
            "generated_at": format_datetime_string(utc_now()),
        }

    # ===== Query and transform =====

    @staticmethod
    def export_limit(resource_cls: type, request: AdminRequest) -> int:
        """Requested limit clamped to max_records; missing or invalid means max_records."""
        max_records = ExportService.config(resource_cls).max_records
        try:
            requested = int(request.get("limit", max_records))
        except (TypeError, ValueError):
            return max_records
        if requested <= 0:
            return max_records
        return min(requested, max_records)

    @staticmethod
    def export_query(db: Session, resource_cls: type, request: AdminRequest, keys: Optional[Sequence[Any]] = None):
        config = ExportService.config(resource_cls)
        query = resource_cls.index_query(request, resource_cls.new_query(db))
        search = request.get("search")
        if search:
            query = ResourceQueryService.apply_search(resource_cls, request, query, str(search))
        query = ResourceQueryService.apply_filters(resource_cls, request, query, request.filters())
        query = TrashService.apply_scope(resource_cls, query, TRASHED_WITH if config.include_trashed else None)

        model = resource_cls.model
        if keys is not None:
            query = query.filter(getattr(model, resource_cls.key_name()).in_(list(keys)))
        sort_field = request.get("sort_field")
        if sort_field not in column_names(model):
            sort_field = resource_cls.key_name()
        direction = str(request.get("sort_direction", "asc")).lower()
        attribute = getattr(model, sort_field)
        query = query.order_by(attribute.desc() if direction == "desc" else attribute.asc())
        return query.limit(ExportService.export_limit(resource_cls, request))

    @staticmethod
    def transform_rows(resource_cls: type, entities: List[Any], options: Dict[str, Any]) -> List[Dict[str, Any]]:
        config = ExportService.config(resource_cls)
        columns = [
            name for name in column_names(resource_cls.model)
            if name not in config.exclude and (config.include_timestamps or name not in TIMESTAMP_COLUMNS)
        ]
        selected = options.get("fields")
        if selected:
            columns = [name for name in columns if name in selected]

        rows = []
        for entity in entities:
            row = {name: to_json_value(getattr(entity, name)) for name in columns}
            for name, transformation in config.transformations.items():
                if row.get(name) is not None:
                    row[name] = transformation(row[name], row)
            rows.append(row)
        return rows

    # ===== Formatters =====

    @staticmethod
    def format_rows(resource_cls: type, rows: List[Dict[str, Any]], format: str) -> Any:
        if format in ("csv", "xlsx"):
            # TODO: write real xlsx workbooks once a spreadsheet library is part of the stack
            return ExportService.format_csv(rows)
        if format == "json":
            return ExportService.format_json(rows)
        if format == "xml":
            return ExportService.format_xml(rows)
        if format == "pdf":
            from admin_panel.services.pdf_service import PDFService
            return PDFService().generate_export_pdf(rows, resource_cls.label())
        raise ExportError(f"No formatter for {format}")

    @staticmethod
    def format_csv(rows: List[Dict[str, Any]]) -> str:
        if not rows:
            return ""
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow({key: _cell(value) for key, value in row.items()})
        return output.getvalue()

    @staticmethod
    def format_json(rows: List[Dict[str, Any]]) -> str:
        return json.dumps(rows, indent=4, ensure_ascii=False, default=str)

    @staticmethod
    def format_xml(rows: List[Dict[str, Any]]) -> str:
        root = ET.Element("resources")
        for row in rows:
            element = ET.SubElement(root, "resource")
            for key, value in row.items():
                ET.SubElement(element, _xml_tag(key)).text = str(_cell(value))
        return ET.tostring(root, encoding="unicode", xml_declaration=True)

    # ===== Metadata =====

    @staticmethod
    def generate_filename(resource_cls: type, format: str, options: Dict[str, Any]) -> str:
        filename = options.get("filename")
        if filename:
            return filename if filename.endswith(f".{format}") else f"{filename}.{format}"
        return f"{snake(resource_cls.base_name())}_export_{export_timestamp()}.{format}"

    @staticmethod
    def available_formats(resource_cls: type, request: AdminRequest) -> Dict[str, Dict[str, Any]]:
        config = ExportService.config(resource_cls)
        if not config.enabled:
            return {}
        can_export = getattr(resource_cls, "can_export_format", None)
        return {
            key: {"key": key, "label": EXPORT_FORMATS[key][0], "is_default": key == config.default_format}
            for key in config.formats
            if key in EXPORT_FORMATS and (can_export is None or can_export(key, request))
        }

    @staticmethod
    def export_stats(resource_cls: type) -> Dict[str, Any]:
        config = ExportService.config(resource_cls)
        return {
            "enabled": config.enabled,
            "available_formats": list(config.formats),
            "default_format": config.default_format,
            "max_records": config.max_records,
            "include_timestamps": config.include_timestamps,
            "include_trashed": config.include_trashed,
            "excluded_fields": list(config.exclude),
            "transformations_count": len(config.transformations),
        }

    @staticmethod
    def validate_export_parameters(resource_cls: type, request: AdminRequest, options: Dict[str, Any]) -> List[str]:
        """Problems with the requested export; the export itself clamps rather than fails."""
        errors = []
        max_records = ExportService.config(resource_cls).max_records
        try:
            limit = int(request.get("limit", max_records))
        except (TypeError, ValueError):
            errors.append("Export limit must be an integer.")
        else:
            if limit > max_records:
                errors.append(f"Export limit cannot exceed {max_records} records.")
        if "fields" in options and not isinstance(options["fields"], (list, tuple)):
            errors.append("Fields option must be an array.")
        return errors
