import argparse
import logging
import sys
from contextlib import ExitStack

import trimesh

from grapher.config import DEFAULT_CLIP_BOUND, DEFAULT_DIMENSION, MAX_EQUATIONS, OUTPUT_FOLDER, GraphConfig
from grapher.errors import GraphError
from grapher.graph import Graph
from grapher.logging_config import setup_logging
from grapher.mesh import MeshBuffers

logger = logging.getLogger(__name__)


def build_graphs(equations, dimension, config):
    """Builds one graph per equation, numbered from 1 in the order given."""
    if len(equations) > MAX_EQUATIONS:
        raise ValueError(f"At most {MAX_EQUATIONS} equations can be graphed at once, got {len(equations)}")

    graphs = []
    try:
        for index, equation in enumerate(equations):
            graphs.append(Graph(equation, dimension, index + 1, config))
    except Exception:
        # a later equation failed; the earlier graphs are never handed out
        for graph in graphs:
            graph.close()
        raise
    return graphs


def assemble_scene(graphs, base=None):
    """Places the base mesh first and appends every graph after it."""
    parts = [base] if base is not None else []
    parts.extend(graph.buffers for graph in graphs)
    return MeshBuffers.combine(*parts)


def load_base_mesh(path):
    mesh = trimesh.load(path, force='mesh')
    logger.info(f"Base mesh loaded from: {path} ({len(mesh.vertices)} vertices)")
    return MeshBuffers.from_trimesh(mesh)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Build triangle meshes and heightmaps for up to three equations z = f(x, y).",
        epilog='Example: grapher "x^2 + y^2" "1/(x*y)"',
    )
    parser.add_argument("equations", nargs="+", metavar="EQUATION",
                        help="Equation in terms of x and y (z is up)")
    parser.add_argument("--dimension", type=int, default=DEFAULT_DIMENSION,
                        help="Samples per axis over [-5, 5]")
    parser.add_argument("--clip-bound", type=float, default=DEFAULT_CLIP_BOUND,
                        help="Samples with |z| above this are left out of the mesh")
    parser.add_argument("--output-dir", default=OUTPUT_FOLDER,
                        help="Directory the heightmap images are written to")
    parser.add_argument("--base-mesh", default=None,
                        help="Mesh drawn before the graphs (any format trimesh can load)")
    parser.add_argument("--export", default=None,
                        help="Write the combined scene to this path, e.g. scene.obj")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)

    args = parser.parse_args(argv)
    if len(args.equations) > MAX_EQUATIONS:
        parser.error(f"at most {MAX_EQUATIONS} equations can be graphed at once")
    return args


def main(argv=None):
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    # trimesh reports unreadable or unknown files as OSError or ValueError
    try:
        base = load_base_mesh(args.base_mesh) if args.base_mesh else None
        config = GraphConfig(clip_bound=args.clip_bound, output_dir=args.output_dir)
        graphs = build_graphs(args.equations, args.dimension, config)
    except (GraphError, OSError, ValueError) as exc:
        logger.error(str(exc))
        return 1

    with ExitStack() as stack:
        for graph in graphs:
            stack.enter_context(graph)

        for graph in graphs:
            print(f"z = {graph.equation}")
            print(f"   Vertices:  {graph.buffers.vertex_count}")
            print(f"   Triangles: {graph.buffers.triangle_count}")
            print(f"   Heightmap: {graph.heightmap_path}")

        scene = assemble_scene(graphs, base)
        if args.export:
            try:
                scene.export(args.export)
            except (OSError, ValueError) as exc:
                logger.error(f"Could not export scene to {args.export}: {exc}")
                return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
