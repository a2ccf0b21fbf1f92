from crashgame import create_app, get_engine, socketio

app = create_app()
 
if __name__ == '__main__':
    # One engine per process; the reloader would start a second one
    get_engine(app).start()
    socketio.run(app, debug=True, use_reloader=False)
