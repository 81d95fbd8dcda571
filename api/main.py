# api/main.py
"""
FastAPI backend - exposes the frame_engine analyze() call as a REST API.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from frame_engine import __version__, analyze

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Frame Engine API",
    description="3D frame direct-stiffness analysis",
    version=__version__,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request Models
# =============================================================================

NodeId = Union[int, str]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SupportsData(_WireModel):
    model_config = ConfigDict(populate_by_name=True, strict=True)

    ux: bool = False
    uy: bool = False
    uz: bool = False
    rx: bool = False
    ry: bool = False
    rz: bool = False


class NodeData(_WireModel):
    id: NodeId
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    supports: SupportsData = Field(default_factory=SupportsData)


class MaterialData(_WireModel):
    elastic_modulus: Optional[float] = Field(None, alias="elasticModulus", description="E (Pa)")
    yield_strength: Optional[float] = Field(None, alias="yieldStrength", description="fy (Pa)")
    poissons_ratio: Optional[float] = Field(None, alias="poissonsRatio")


class SectionData(_WireModel):
    kind: Optional[str] = Field(None, description="rectangular, circular, i-section, explicit")
    width: Optional[float] = None
    height: Optional[float] = None
    area: Optional[float] = None
    moment_of_inertia_y: Optional[float] = Field(None, alias="momentOfInertiaY")
    moment_of_inertia_z: Optional[float] = Field(None, alias="momentOfInertiaZ")
    torsional_constant: Optional[float] = Field(None, alias="torsionalConstant")


class ElementData(_WireModel):
    id: NodeId
    kind: str = "beam"
    node_ids: List[NodeId] = Field(default_factory=list, alias="nodeIds")
    material: MaterialData = Field(default_factory=MaterialData)
    section: SectionData = Field(default_factory=SectionData)


class LoadData(_WireModel):
    kind: str = "point"
    node_id: Optional[NodeId] = Field(None, alias="nodeId")
    axis: Optional[str] = Field(None, description="x, y, z, mx, my, mz")
    magnitude: float = 0.0


class StructureData(_WireModel):
    nodes: List[NodeData] = Field(default_factory=list)
    elements: List[ElementData] = Field(default_factory=list)
    loads: List[LoadData] = Field(default_factory=list)


class ConfigurationData(_WireModel):
    use_sparse_matrices: Optional[bool] = Field(None, alias="useSparseMatrices")
    use_conjugate_gradient: Optional[bool] = Field(None, alias="useConjugateGradient")
    memory_optimization: Optional[bool] = Field(None, alias="memoryOptimization")
    enable_profiling: Optional[bool] = Field(None, alias="enableProfiling")
    convergence_tolerance: Optional[float] = Field(None, alias="convergenceTolerance")
    max_iterations: Optional[int] = Field(None, alias="maxIterations")
    safety_factor: Optional[float] = Field(None, alias="safetyFactor")
    sparse_node_threshold: Optional[int] = Field(None, alias="sparseNodeThreshold")


class AnalyzeRequest(_WireModel):
    structure: StructureData
    configuration: Optional[ConfigurationData] = None


# =============================================================================
# Analysis
# =============================================================================

def run_analysis(request: AnalyzeRequest) -> Dict[str, Any]:
    """Hand the validated request to the engine; returns the result document."""
    structure = request.structure.model_dump(by_alias=True, exclude_none=True)
    config = None
    if request.configuration is not None:
        config = request.configuration.model_dump(by_alias=True, exclude_none=True)

    result = analyze(structure, config)
    logger.info("Analyzed %d nodes / %d elements: valid=%s",
                len(request.structure.nodes), len(request.structure.elements), result.is_valid)
    return result.to_dict()


# =============================================================================
# API Endpoints
# =============================================================================

@app.get("/")
def root():
    """Health check."""
    return {"status": "ok", "service": "Frame Engine API", "version": __version__}


@app.post("/api/analyze")
def analyze_structure(request: AnalyzeRequest) -> Dict[str, Any]:
    """Analyze a structure. Invalid structures still return 200 with isValid=false."""
    return run_analysis(request)


@app.post("/api/export/csv")
def export_csv(request: AnalyzeRequest):
    """Export member forces and stresses as CSV."""
    result = run_analysis(request)

    if not result["isValid"]:
        raise HTTPException(status_code=400, detail=result["diagnostics"])

    stresses = {s["elementId"]: s for s in result["stresses"]}
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['element_id', 'axial_N', 'shear_y_N', 'shear_z_N', 'torsion_Nm',
                     'moment_y_Nm', 'moment_z_Nm', 'combined_stress_MPa', 'safe'])

    for f in result["forces"]:
        s = stresses[f["elementId"]]
        writer.writerow([
            f["elementId"],
            round(f["axial"], 2), round(f["shearY"], 2), round(f["shearZ"], 2),
            round(f["torsion"], 2), round(f["momentY"], 2), round(f["momentZ"], 2),
            round(s["combinedStress"] / 1e6, 3), "Y" if s["isSafe"] else "N",
        ])

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=member_results.csv"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
