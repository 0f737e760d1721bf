"""
Spreadsheet Endpoints Module

Export of a project to an xlsx workbook and import of an edited workbook
back into the project.
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from flightdeck.api import deps
from flightdeck.schemas.project import ImportResult, build_detail
from flightdeck.services.project_service import ProjectService

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/{project_id}/export")
def export_project(
    project_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Download the project as a workbook (info sheet + task sheet).

    Raises:
        HTTPException 404: If the project doesn't exist
    """
    filename, data = service.export_spreadsheet(project_id)
    return Response(
        content=data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("/{project_id}/import", response_model=ImportResult)
def import_project(
    project_id: str,
    file: UploadFile = File(...),
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Import an edited workbook.

    Every phase present in the sheet is replaced by the sheet's rows. Bad
    rows are skipped and listed in the response.

    Raises:
        HTTPException 400: If the file is not a readable workbook or has no task sheet
        HTTPException 423: If the project is locked
    """
    data = file.file.read()
    outcome = service.import_spreadsheet(project_id, data)
    report = outcome.report
    return {
        **build_detail(outcome.project, outcome.warnings),
        "applied": report.applied,
        "skipped": report.skipped,
        "failed": report.failed,
        "errors": report.errors,
    }
