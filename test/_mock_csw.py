from pathlib import Path

from flask import Flask, Response, request
import flask.logging

csw_flask_app = Flask("mock_csw")
csw_flask_app.logger.removeHandler(flask.logging.default_handler)

ROOT = Path(__file__).parent / "_mock_csw_data"


def _xml_response(file_name: str, status: int = 200) -> Response:
    data_path = ROOT / file_name
    return Response(data_path.read_bytes(), status=status, mimetype="application/xml")


@csw_flask_app.route("/catalogue/csw", methods=["GET", "POST"])
def _mock_csw():
    # a properly prepared URL always carries these and never a request parameter
    if request.args.get("service") != "CSW" or request.args.get("version") != "2.0.2":
        return _xml_response("exception_report1.xml")
    if request.method == "POST":
        if "request" in request.args:
            data_path = "exception_report1.xml"
        else:
            body = request.get_data(as_text=True)
            if "csw:AnyText" in body:
                data_path = "get_records_filtered_response1.xml"
            elif ">identifier<" in body:
                data_path = "get_records_workspace_response1.xml"
            else:
                data_path = "get_records_response1.xml"
    else:
        operation = request.args.get("request")
        if operation == "GetRecordById" and request.args.get("id"):
            data_path = "get_record_by_id_response1.xml"
        elif operation == "GetCapabilities":
            data_path = "capabilities1.xml"
        else:
            data_path = "exception_report1.xml"
    return _xml_response(data_path)


@csw_flask_app.route("/catalogue/csw-iso", methods=["POST"])
def _mock_csw_iso():
    return _xml_response("get_records_iso_response1.xml")


@csw_flask_app.route("/catalogue/csw-bogus", methods=["POST"])
def _mock_csw_bogus_crs():
    return _xml_response("get_records_bogus_crs_response1.xml")


@csw_flask_app.route("/catalogue/csw-broken", methods=["GET", "POST"])
def _mock_csw_broken():
    return Response("Internal server error", status=500, mimetype="text/plain")


@csw_flask_app.route("/catalogue/not-xml", methods=["GET", "POST"])
def _mock_not_xml():
    return Response("<html><body>Not a catalogue", mimetype="text/html")
