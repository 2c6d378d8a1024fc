import logging
import os

from flask import Flask, Response, jsonify, request, send_from_directory, url_for

from grapher.cli import assemble_scene, build_graphs
from grapher.config import DEFAULT_CLIP_BOUND, DEFAULT_DIMENSION, MAX_EQUATIONS, OUTPUT_FOLDER, GraphConfig
from grapher.errors import GraphError, HeightmapWriteError
from grapher.logging_config import setup_logging

logger = logging.getLogger("grapher.app")

app = Flask(__name__)
app.config['OUTPUT_FOLDER'] = OUTPUT_FOLDER
app.config['CLIP_BOUND'] = DEFAULT_CLIP_BOUND

# Combined buffers of the most recent request, for /export.obj
last_scene = None


def _graph_payload(graph):
    filename = os.path.basename(graph.heightmap_path)
    return {
        "id": graph.id,
        "equation": graph.equation,
        "dimension": graph.dimension,
        "vertex_count": graph.buffers.vertex_count,
        "triangle_count": graph.buffers.triangle_count,
        "vertices": graph.vertex_buffer.tolist(),
        "indices": graph.index_buffer.tolist(),
        "heightmap_url": url_for('generated_file', filename=filename),
    }


@app.route('/graph', methods=['POST'])
def graph_route():
    global last_scene

    data = request.get_json(silent=True) or {}
    equations = data.get('equations')
    dimension = data.get('dimension', DEFAULT_DIMENSION)

    if isinstance(equations, str):
        equations = [equations]
    if not equations or not all(isinstance(eq, str) for eq in equations):
        return jsonify({"error": "Provide 'equations' as a list of strings."}), 400
    if len(equations) > MAX_EQUATIONS:
        return jsonify({"error": f"At most {MAX_EQUATIONS} equations can be graphed at once."}), 400

    logger.info(f"Graph request: equations={equations}, dimension={dimension}")

    config = GraphConfig(clip_bound=app.config['CLIP_BOUND'], output_dir=app.config['OUTPUT_FOLDER'])
    try:
        graphs = build_graphs(equations, dimension, config)
    except HeightmapWriteError as exc:
        logger.error(str(exc))
        return jsonify({"error": str(exc)}), 500
    except GraphError as exc:
        logger.warning(str(exc))
        return jsonify({"error": str(exc)}), 400

    scene = assemble_scene(graphs)
    last_scene = scene

    payload = {
        "graphs": [_graph_payload(graph) for graph in graphs],
        "vertex_count": scene.vertex_count,
        "triangle_count": scene.triangle_count,
        "vertices": scene.vertices.tolist(),
        "indices": scene.indices.tolist(),
    }
    for graph in graphs:
        graph.close()
    return jsonify(payload), 200


@app.route('/generated/<filename>')
def generated_file(filename):
    return send_from_directory(os.path.abspath(app.config['OUTPUT_FOLDER']), filename)


@app.route('/export.obj')
def export_obj():
    if last_scene is None:
        return jsonify({"error": "Nothing has been graphed yet."}), 404
    obj_text = last_scene.to_trimesh().export(file_type='obj')
    return Response(obj_text, mimetype='text/plain')


if __name__ == '__main__':
    setup_logging()
    os.makedirs(app.config['OUTPUT_FOLDER'], exist_ok=True)
    app.run(debug=True)
